"""Subscription lifecycle endpoints: cancel, reactivate, refund, refund history."""

from fastapi import APIRouter, Request
from sqlalchemy import select

from marketadmin.api.deps import AdminActor, CurrentActor, DbSession, Processor
from marketadmin.models.refund import Refund
from marketadmin.schemas.subscription import RefundRequest, refund_to_response, subscription_to_response
from marketadmin.services import subscription_lifecycle as lifecycle

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

_ERRORS = {
    401: {"description": "Not authenticated"},
    404: {"description": "Subscription not found"},
}


@router.get(
    "/{subscription_id}",
    summary="Get subscription",
    responses=_ERRORS,
)
async def get_subscription(
    session: DbSession,
    actor: CurrentActor,
    subscription_id: str,
) -> dict:
    """Owner or admin only; other users get 404."""
    sub = await lifecycle.get_subscription_for_actor(session, subscription_id, actor)
    return {"subscription": subscription_to_response(sub)}


@router.post(
    "/{subscription_id}/cancel",
    summary="Cancel subscription",
    responses={**_ERRORS, 409: {"description": "Already canceled"}, 500: {"description": "Processor failure"}},
)
async def cancel_subscription(
    request: Request,
    session: DbSession,
    actor: CurrentActor,
    processor: Processor,
    subscription_id: str,
) -> dict:
    sub = await lifecycle.cancel_subscription(session, processor, subscription_id, actor, request=request)
    await session.commit()
    return {
        "success": True,
        "message": "Subscription canceled successfully",
        "subscription": subscription_to_response(sub),
    }


@router.post(
    "/{subscription_id}/reactivate",
    summary="Reactivate subscription",
    responses={**_ERRORS, 409: {"description": "Already active"}, 500: {"description": "Processor failure"}},
)
async def reactivate_subscription(
    request: Request,
    session: DbSession,
    actor: CurrentActor,
    processor: Processor,
    subscription_id: str,
) -> dict:
    """Starts a new billing period from now (one cycle of the subscription's plan)."""
    sub = await lifecycle.reactivate_subscription(session, processor, subscription_id, actor, request=request)
    await session.commit()
    return {
        "success": True,
        "message": "Subscription reactivated successfully",
        "subscription": subscription_to_response(sub),
    }


@router.post(
    "/{subscription_id}/refund",
    summary="Refund subscription (admin)",
    responses={
        **_ERRORS,
        400: {"description": "Invalid amount"},
        403: {"description": "Administrator role required"},
        500: {"description": "Processor failure"},
    },
)
async def refund_subscription(
    request: Request,
    session: DbSession,
    actor: AdminActor,
    processor: Processor,
    subscription_id: str,
    body: RefundRequest,
) -> dict:
    """Refund up to the plan's cap. Refunding the full cap also cancels the subscription."""
    sub, refund = await lifecycle.refund_subscription(
        session, processor, subscription_id, body.amount, body.reason, actor, request=request
    )
    await session.commit()
    refund_data = refund_to_response(refund)
    return {
        "success": True,
        "message": f"Refund of ${refund_data['amount']} processed successfully",
        "refund": refund_data,
        "subscription": subscription_to_response(sub),
    }


@router.get(
    "/{subscription_id}/refunds",
    summary="Refund history (admin)",
    responses={**_ERRORS, 403: {"description": "Administrator role required"}},
)
async def list_refunds(
    session: DbSession,
    actor: AdminActor,
    subscription_id: str,
) -> dict:
    sub = await lifecycle.get_subscription_for_actor(session, subscription_id, actor)
    r = await session.execute(
        select(Refund)
        .where(Refund.subscription_id == sub.id)
        .order_by(Refund.processed_at.desc(), Refund.id)
    )
    items = [refund_to_response(row) for row in r.scalars().all()]
    total_cents = sum(item["amount_cents"] for item in items)
    return {"items": items, "total": len(items), "refunded_cents": total_cents}
