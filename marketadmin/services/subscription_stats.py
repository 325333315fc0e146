"""Admin subscription listing: filters, search and revenue/churn stats."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketadmin.core.errors import InvalidArgumentError
from marketadmin.models.subscription import Subscription, SubscriptionStatus
from marketadmin.models.user import User
from marketadmin.services.plans import get_plan


@dataclass
class SubscriptionFilter:
    search: str = ""
    status: str = "all"
    plan: str = "all"

    def apply(self, stmt: Select) -> Select:
        search = self.search.strip()
        if search:
            escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            pattern = f"%{escaped}%"
            stmt = stmt.join(User, User.id == Subscription.user_id).where(
                or_(User.name.ilike(pattern, escape="\\"), User.email.ilike(pattern, escape="\\"))
            )
        if self.status.lower() != "all":
            try:
                status = SubscriptionStatus(self.status.upper())
            except ValueError:
                raise InvalidArgumentError(f"Unknown status filter: {self.status}")
            stmt = stmt.where(Subscription.status == status)
        if self.plan.lower() != "all":
            stmt = stmt.where(Subscription.plan_id == self.plan)
        return stmt


async def list_subscriptions(
    session: AsyncSession, flt: SubscriptionFilter, offset: int, limit: int
) -> tuple[list[Subscription], int]:
    """Newest first. Returns (page, total matching)."""
    base = flt.apply(select(Subscription))
    total = await session.scalar(select(func.count()).select_from(base.subquery()))
    r = await session.execute(
        base.options(selectinload(Subscription.user))
        .order_by(Subscription.created_at.desc(), Subscription.id)
        .offset(offset)
        .limit(limit)
    )
    return list(r.scalars().all()), int(total or 0)


def month_start(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def _count(session: AsyncSession, *conditions) -> int:
    stmt = select(func.count(Subscription.id))
    if conditions:
        stmt = stmt.where(*conditions)
    return int(await session.scalar(stmt) or 0)


async def subscription_stats(session: AsyncSession, now: datetime | None = None) -> dict:
    """
    Totals, revenue from the plan table and this month's churn.

    monthly_revenue is in cents: every ACTIVE subscription contributes its plan price
    normalized to one month. churn_rate is the percentage of subscriptions created before
    this month that were canceled this month.
    """
    now = now or datetime.now(timezone.utc)
    start = month_start(now)

    total = await _count(session)
    active = await _count(session, Subscription.status == SubscriptionStatus.ACTIVE)

    r = await session.execute(
        select(Subscription.plan_id, func.count(Subscription.id))
        .where(Subscription.status == SubscriptionStatus.ACTIVE)
        .group_by(Subscription.plan_id)
    )
    monthly_revenue = sum(get_plan(plan_id).monthly_price_cents * n for plan_id, n in r.all())

    new_this_month = await _count(session, Subscription.created_at >= start)
    canceled_this_month = await _count(
        session,
        Subscription.status == SubscriptionStatus.CANCELED,
        Subscription.updated_at >= start,
    )
    existing_before_month = await _count(session, Subscription.created_at < start)
    churn_rate = (
        round(canceled_this_month / existing_before_month * 100, 2) if existing_before_month else 0.0
    )

    return {
        "total_subscriptions": total,
        "active_subscriptions": active,
        "monthly_revenue": monthly_revenue,
        "yearly_revenue": monthly_revenue * 12,
        "churn_rate": churn_rate,
        "new_subscriptions": new_this_month,
    }
