"""Static plan table: prices, billing cycles and refund caps."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from marketadmin.config import settings

Interval = Literal["month", "year"]


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: Decimal
    interval: Interval
    # None = use settings.refund_max_amount
    max_refund: Decimal | None = None

    @property
    def max_refund_amount(self) -> Decimal:
        if self.max_refund is not None:
            return self.max_refund
        return settings.refund_max_amount

    @property
    def months_per_cycle(self) -> int:
        return 12 if self.interval == "year" else 1

    @property
    def monthly_price_cents(self) -> int:
        """Price normalized to one month, in cents."""
        return int((self.price * 100) / self.months_per_cycle)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "interval": self.interval,
            "max_refund_amount": str(self.max_refund_amount),
        }


FREE = Plan("free", "Free", Decimal("0"), "month", max_refund=Decimal("0"))
PRO_MONTHLY = Plan("pro_monthly", "Pro", Decimal("29"), "month")
TEAM_MONTHLY = Plan("team_monthly", "Team", Decimal("99"), "month")
PRO_ANNUAL = Plan("pro_annual", "Pro (annual)", Decimal("290"), "year", max_refund=Decimal("290"))

PLANS: dict[str, Plan] = {p.id: p for p in (FREE, PRO_MONTHLY, TEAM_MONTHLY, PRO_ANNUAL)}


def get_plan(plan_id: str | None) -> Plan:
    """Resolve a plan id. Unknown ids bill monthly with the default refund cap."""
    if plan_id and plan_id in PLANS:
        return PLANS[plan_id]
    return Plan(plan_id or "unknown", plan_id or "Unknown", Decimal("0"), "month")


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the end of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_period_end(plan: Plan, start: datetime) -> datetime:
    return add_months(start, plan.months_per_cycle)
