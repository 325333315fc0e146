"""Payment processor clients: Stripe, and a manual one for local-only subscriptions."""

from __future__ import annotations

import logging
import uuid
from typing import Protocol

import stripe
from starlette.concurrency import run_in_threadpool

from marketadmin.config import settings
from marketadmin.models.subscription import Subscription

logger = logging.getLogger(__name__)

stripe.api_key = settings.stripe_secret_key
if settings.stripe_api_version:
    stripe.api_version = settings.stripe_api_version


class PaymentProcessorError(Exception):
    """The processor rejected the call or could not be reached."""


class PaymentProcessor(Protocol):
    name: str

    async def cancel(self, subscription: Subscription) -> None: ...

    async def resume(self, subscription: Subscription) -> None: ...

    async def refund(self, subscription: Subscription, amount_cents: int, reason: str) -> str | None: ...


class ManualProcessor:
    """Records the action locally only. Used when no processor is configured."""

    name = "manual"

    async def cancel(self, subscription: Subscription) -> None:
        logger.info("Manual processor: cancel %s (no remote call)", subscription.id)

    async def resume(self, subscription: Subscription) -> None:
        logger.info("Manual processor: resume %s (no remote call)", subscription.id)

    async def refund(self, subscription: Subscription, amount_cents: int, reason: str) -> str | None:
        logger.info("Manual processor: refund %s cents on %s", amount_cents, subscription.id)
        return f"manual_{uuid.uuid4().hex}"


class StripeProcessor:
    """
    Stripe Billing. Cancellation is scheduled at Stripe's period end so the Stripe
    subscription stays resumable; access is revoked locally right away.
    """

    name = "stripe"

    async def cancel(self, subscription: Subscription) -> None:
        await self._modify(subscription, cancel_at_period_end=True)

    async def resume(self, subscription: Subscription) -> None:
        await self._modify(subscription, cancel_at_period_end=False)

    async def refund(self, subscription: Subscription, amount_cents: int, reason: str) -> str | None:
        sub_id = _require_processor_id(subscription)
        try:
            remote = await run_in_threadpool(
                stripe.Subscription.retrieve, sub_id, expand=["latest_invoice.payment_intent"]
            )
            invoice = remote.latest_invoice
            intent = invoice.payment_intent if invoice else None
            if not intent:
                raise PaymentProcessorError(f"No paid invoice to refund for {sub_id}")
            intent_id = intent if isinstance(intent, str) else intent.id
            refund = await run_in_threadpool(
                stripe.Refund.create,
                payment_intent=intent_id,
                amount=amount_cents,
                reason="requested_by_customer",
                metadata={"subscription_id": subscription.id, "note": reason[:500]},
            )
        except stripe.StripeError as e:
            raise PaymentProcessorError(str(e)) from e
        return refund.id

    async def _modify(self, subscription: Subscription, **fields) -> None:
        sub_id = _require_processor_id(subscription)
        try:
            await run_in_threadpool(stripe.Subscription.modify, sub_id, **fields)
        except stripe.StripeError as e:
            raise PaymentProcessorError(str(e)) from e


def _require_processor_id(subscription: Subscription) -> str:
    if not subscription.processor_subscription_id:
        raise PaymentProcessorError(f"Subscription {subscription.id} has no processor id")
    return subscription.processor_subscription_id


class RoutingProcessor:
    """Picks Stripe for subscriptions billed through Stripe, manual otherwise."""

    def __init__(self, remote: PaymentProcessor, local: PaymentProcessor):
        self._remote = remote
        self._local = local

    def for_subscription(self, subscription: Subscription) -> PaymentProcessor:
        if subscription.processor_subscription_id:
            return self._remote
        return self._local


def get_payment_processor() -> RoutingProcessor | PaymentProcessor:
    """FastAPI dependency. Overridden in tests with fakes."""
    if settings.stripe_secret_key:
        return RoutingProcessor(StripeProcessor(), ManualProcessor())
    return ManualProcessor()


def resolve_processor(processor: RoutingProcessor | PaymentProcessor, subscription: Subscription) -> PaymentProcessor:
    if isinstance(processor, RoutingProcessor):
        return processor.for_subscription(subscription)
    return processor
