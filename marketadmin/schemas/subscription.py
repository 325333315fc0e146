"""Request bodies and JSON projections for subscription endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field

from marketadmin.models.refund import Refund
from marketadmin.models.subscription import Subscription
from marketadmin.services.plans import get_plan
from marketadmin.services.subscription_lifecycle import as_utc


class RefundRequest(BaseModel):
    # Range checks happen in the service so they fail the same way for every caller
    amount: Decimal
    reason: str | None = Field(default=None, max_length=500)


def _iso(value) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def subscription_to_response(sub: Subscription) -> dict:
    plan = get_plan(sub.plan_id)
    user = sub.user
    return {
        "id": sub.id,
        "user_id": sub.user_id,
        "user": {"id": user.id, "name": user.name, "email": user.email} if user else None,
        "plan_id": sub.plan_id,
        "plan_name": plan.name,
        "status": sub.status.value,
        "cancel_at_period_end": sub.cancel_at_period_end,
        "current_period_start": _iso(sub.current_period_start),
        "current_period_end": _iso(sub.current_period_end),
        "created_at": _iso(sub.created_at),
        "updated_at": _iso(sub.updated_at),
    }


def refund_to_response(refund: Refund) -> dict:
    return {
        "id": refund.id,
        "subscription_id": refund.subscription_id,
        "amount": str((Decimal(refund.amount_cents) / 100).quantize(Decimal("0.01"))),
        "amount_cents": refund.amount_cents,
        "currency": refund.currency,
        "reason": refund.reason,
        "status": refund.status,
        "processor": refund.processor,
        "processor_refund_id": refund.processor_refund_id,
        "processed_by": refund.processed_by,
        "processed_at": _iso(refund.processed_at),
    }
