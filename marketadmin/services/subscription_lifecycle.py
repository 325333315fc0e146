"""
Subscription lifecycle: cancel, reactivate and refund.

Each operation runs inside the caller's transaction. The subscription row is read
``FOR UPDATE`` and its version is bumped before the payment processor is called, so an
operation that lost a race on the same id fails without touching the processor. The
processor is called before the state change; if it fails the transaction is rolled back.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from marketadmin.config import settings
from marketadmin.core.authz import Actor, require_admin, scope_to_actor
from marketadmin.core.errors import (
    InternalError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    ServiceError,
)
from marketadmin.metrics import REFUNDED_CENTS, SUBSCRIPTION_OPERATIONS
from marketadmin.models.refund import Refund
from marketadmin.models.subscription import Subscription, SubscriptionStatus
from marketadmin.services.audit import log_action
from marketadmin.services.payment_processor import (
    PaymentProcessor,
    PaymentProcessorError,
    RoutingProcessor,
    resolve_processor,
)
from marketadmin.services.plans import get_plan, next_period_end

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Admin refund"


def as_utc(value: datetime | None) -> datetime | None:
    """Stored timestamps are UTC; some drivers (SQLite) return them naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _tracked(operation: str):
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                result = await fn(*args, **kwargs)
            except ServiceError as e:
                SUBSCRIPTION_OPERATIONS.labels(operation=operation, outcome=e.kind).inc()
                raise
            SUBSCRIPTION_OPERATIONS.labels(operation=operation, outcome="ok").inc()
            return result

        return wrapper

    return decorator


async def get_subscription_for_actor(
    session: AsyncSession, subscription_id: str, actor: Actor, *, for_update: bool = False
) -> Subscription:
    """Load a subscription visible to the actor. Raises NotFoundError otherwise."""
    stmt = (
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .options(selectinload(Subscription.user))
    )
    stmt = scope_to_actor(stmt, actor)
    if for_update:
        stmt = stmt.with_for_update(of=Subscription).execution_options(populate_existing=True)
    r = await session.execute(stmt)
    sub = r.scalar_one_or_none()
    if sub is None:
        raise NotFoundError("Subscription not found")
    return sub


async def _processor_call(coro, operation: str, sub: Subscription):
    try:
        return await coro
    except PaymentProcessorError as e:
        logger.error("Processor %s failed for subscription %s: %s", operation, sub.id, e)
        raise InternalError("Payment processor request failed; subscription was not changed") from e


async def _flush_guarded(session: AsyncSession) -> None:
    try:
        await session.flush()
    except StaleDataError as e:
        raise InvalidStateError("Subscription was modified concurrently; resubmit the request") from e


async def _claim(session: AsyncSession, sub: Subscription) -> None:
    """
    Bump the row version before any processor call.

    The UPDATE is checked against the version that was read, so an operation that lost
    a race fails here with nothing done at the processor, and the row stays locked for
    the rest of the transaction.
    """
    flag_modified(sub, "updated_at")
    await _flush_guarded(session)


@_tracked("cancel")
async def cancel_subscription(
    session: AsyncSession,
    processor: RoutingProcessor | PaymentProcessor,
    subscription_id: str,
    actor: Actor,
    *,
    now: datetime | None = None,
    request: Request | None = None,
) -> Subscription:
    """Immediate cancel: access ends now, the record is kept."""
    now = now or datetime.now(timezone.utc)
    sub = await get_subscription_for_actor(session, subscription_id, actor, for_update=True)
    if sub.status == SubscriptionStatus.CANCELED:
        raise InvalidStateError("Subscription is already canceled")

    await _claim(session, sub)
    await _processor_call(resolve_processor(processor, sub).cancel(sub), "cancel", sub)

    previous = sub.status
    sub.status = SubscriptionStatus.CANCELED
    sub.cancel_at_period_end = True
    sub.updated_at = now
    await _flush_guarded(session)
    await log_action(
        session,
        actor.user_id,
        "subscription.cancel",
        "subscription",
        sub.id,
        details={"previous_status": previous.value},
        request=request,
    )
    logger.info("Subscription %s canceled by user %s (was %s)", sub.id, actor.user_id, previous.value)
    return sub


@_tracked("reactivate")
async def reactivate_subscription(
    session: AsyncSession,
    processor: RoutingProcessor | PaymentProcessor,
    subscription_id: str,
    actor: Actor,
    *,
    now: datetime | None = None,
    request: Request | None = None,
) -> Subscription:
    """
    Back to ACTIVE with a fresh billing period starting now.

    The new period ends one plan cycle after now. If that is not later than the
    previous end, it ends one cycle after the previous end instead.
    """
    now = now or datetime.now(timezone.utc)
    sub = await get_subscription_for_actor(session, subscription_id, actor, for_update=True)
    if sub.status == SubscriptionStatus.ACTIVE and not sub.cancel_at_period_end:
        raise InvalidStateError("Subscription is already active")

    plan = get_plan(sub.plan_id)
    previous_end = as_utc(sub.current_period_end)
    await _claim(session, sub)
    await _processor_call(resolve_processor(processor, sub).resume(sub), "resume", sub)

    previous = sub.status
    sub.status = SubscriptionStatus.ACTIVE
    sub.cancel_at_period_end = False
    sub.current_period_start = now
    period_end = next_period_end(plan, now)
    if period_end <= previous_end:
        # Month-end clamping, or time left on the old period, would move the end backwards
        period_end = next_period_end(plan, previous_end)
    sub.current_period_end = period_end
    sub.updated_at = now
    await _flush_guarded(session)
    await log_action(
        session,
        actor.user_id,
        "subscription.reactivate",
        "subscription",
        sub.id,
        details={"previous_status": previous.value, "current_period_end": sub.current_period_end.isoformat()},
        request=request,
    )
    logger.info("Subscription %s reactivated by user %s until %s", sub.id, actor.user_id, sub.current_period_end)
    return sub


def parse_refund_amount(amount) -> Decimal:
    """Validate a refund amount in currency units. Raises InvalidArgumentError."""
    if isinstance(amount, bool) or amount is None:
        raise InvalidArgumentError("Valid refund amount is required")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidArgumentError("Valid refund amount is required")
    if not value.is_finite() or value <= 0:
        raise InvalidArgumentError("Valid refund amount is required")
    if value.as_tuple().exponent < -2:
        raise InvalidArgumentError("Refund amount must have at most 2 decimal places")
    return value


@_tracked("refund")
async def refund_subscription(
    session: AsyncSession,
    processor: RoutingProcessor | PaymentProcessor,
    subscription_id: str,
    amount,
    reason: str | None,
    actor: Actor,
    *,
    now: datetime | None = None,
    request: Request | None = None,
) -> tuple[Subscription, Refund]:
    """
    Refund part or all of the plan's refundable amount.

    A refund that reaches the plan's cap also cancels the subscription. For that case
    the processor subscription is canceled first and resumed again if the refund itself
    is rejected, so money never moves without the matching local record.
    """
    require_admin(actor)
    value = parse_refund_amount(amount)
    now = now or datetime.now(timezone.utc)
    sub = await get_subscription_for_actor(session, subscription_id, actor, for_update=True)

    max_amount = get_plan(sub.plan_id).max_refund_amount
    if value > max_amount:
        raise InvalidArgumentError(f"Refund amount cannot exceed ${max_amount}")

    await _claim(session, sub)
    reason_text = (reason or "").strip()[:500] or DEFAULT_REFUND_REASON
    amount_cents = int(value * 100)
    full_refund = value >= max_amount
    target = resolve_processor(processor, sub)

    if full_refund and sub.status != SubscriptionStatus.CANCELED:
        await _processor_call(target.cancel(sub), "cancel", sub)
        try:
            processor_refund_id = await target.refund(sub, amount_cents, reason_text)
        except PaymentProcessorError as e:
            logger.error("Processor refund failed for subscription %s: %s", sub.id, e)
            try:
                await target.resume(sub)
            except PaymentProcessorError:
                logger.exception("Could not undo processor cancel for subscription %s", sub.id)
            raise InternalError("Payment processor request failed; subscription was not changed") from e
    else:
        processor_refund_id = await _processor_call(
            target.refund(sub, amount_cents, reason_text), "refund", sub
        )

    refund = Refund(
        subscription_id=sub.id,
        user_id=sub.user_id,
        amount_cents=amount_cents,
        currency=settings.billing_currency,
        reason=reason_text,
        status="processed",
        processor=target.name,
        processor_refund_id=processor_refund_id,
        processed_by=actor.user_id,
        processed_at=now,
    )
    session.add(refund)

    previous = sub.status
    if full_refund:
        sub.status = SubscriptionStatus.CANCELED
        sub.cancel_at_period_end = True
        sub.updated_at = now
    await _flush_guarded(session)
    await log_action(
        session,
        actor.user_id,
        "subscription.refund",
        "subscription",
        sub.id,
        details={
            "refund_id": refund.id,
            "amount_cents": amount_cents,
            "reason": reason_text,
            "full_refund": full_refund,
            "previous_status": previous.value,
        },
        request=request,
    )
    REFUNDED_CENTS.labels(processor=target.name).inc(amount_cents)
    logger.info(
        "Refund %s of %s cents on subscription %s processed by user %s (full=%s)",
        refund.id,
        amount_cents,
        sub.id,
        actor.user_id,
        full_refund,
    )
    return sub, refund
