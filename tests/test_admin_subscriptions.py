"""Tests for the admin subscription list: filters, pagination and stats."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient

from marketadmin.models.subscription import Subscription, SubscriptionStatus
from marketadmin.services.subscription_stats import month_start, subscription_stats

from tests.conftest import NOW, async_session_maker, create_subscription, create_user


def _at(month: int, day: int) -> datetime:
    return datetime(2026, month, day, 9, 0, tzinfo=timezone.utc)


async def _set_updated_at(sub_id: str, value: datetime) -> None:
    async with async_session_maker() as session:
        sub = await session.get(Subscription, sub_id)
        sub.updated_at = value
        await session.commit()


@pytest_asyncio.fixture
async def catalog(member, other_member):
    """Five subscriptions spread over January..March 2026."""
    third = await create_user("third@test.com", name="Third User")
    fourth = await create_user("fourth@test.com", name="Fourth User")
    fifth = await create_user("fifth@test.com", name="Fifth_User")
    subs = {
        "monthly": await create_subscription(member.id, created_at=_at(2, 1)),
        "annual": await create_subscription(other_member.id, plan_id="pro_annual", created_at=_at(3, 5)),
        "canceled": await create_subscription(
            third.id,
            plan_id="team_monthly",
            status=SubscriptionStatus.CANCELED,
            cancel_at_period_end=True,
            created_at=_at(1, 10),
        ),
        "free": await create_subscription(fourth.id, plan_id="free", created_at=_at(2, 20)),
        "past_due": await create_subscription(
            fifth.id, status=SubscriptionStatus.PAST_DUE, created_at=_at(1, 1)
        ),
    }
    await _set_updated_at(subs["canceled"].id, _at(3, 10))
    return subs


def test_month_start():
    assert month_start(NOW) == datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_subscription_stats(catalog):
    async with async_session_maker() as session:
        stats = await subscription_stats(session, now=NOW)
    assert stats == {
        "total_subscriptions": 5,
        "active_subscriptions": 3,
        "monthly_revenue": 2900 + 2416,
        "yearly_revenue": (2900 + 2416) * 12,
        "churn_rate": 25.0,
        "new_subscriptions": 1,
    }


@pytest.mark.asyncio
async def test_subscription_stats_empty(clean_db):
    async with async_session_maker() as session:
        stats = await subscription_stats(session, now=NOW)
    assert stats["total_subscriptions"] == 0
    assert stats["monthly_revenue"] == 0
    assert stats["churn_rate"] == 0.0


@pytest.mark.asyncio
async def test_list_newest_first_with_pagination(client: AsyncClient, admin_headers, catalog):
    resp = await client.get("/api/v1/admin/subscriptions?page=1&limit=2", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 5
    assert data["total_pages"] == 3
    assert data["has_more"] is True
    assert [item["id"] for item in data["items"]] == [catalog["annual"].id, catalog["free"].id]
    assert set(data["stats"]) == {
        "total_subscriptions",
        "active_subscriptions",
        "monthly_revenue",
        "yearly_revenue",
        "churn_rate",
        "new_subscriptions",
    }

    resp = await client.get("/api/v1/admin/subscriptions?page=3&limit=2", headers=admin_headers)
    data = resp.json()
    assert [item["id"] for item in data["items"]] == [catalog["past_due"].id]
    assert data["has_more"] is False


@pytest.mark.asyncio
async def test_filter_by_status_and_plan(client: AsyncClient, admin_headers, catalog):
    resp = await client.get("/api/v1/admin/subscriptions?status=canceled", headers=admin_headers)
    assert [item["id"] for item in resp.json()["items"]] == [catalog["canceled"].id]

    resp = await client.get("/api/v1/admin/subscriptions?plan=pro_monthly", headers=admin_headers)
    ids = {item["id"] for item in resp.json()["items"]}
    assert ids == {catalog["monthly"].id, catalog["past_due"].id}

    resp = await client.get(
        "/api/v1/admin/subscriptions?plan=pro_monthly&status=ACTIVE", headers=admin_headers
    )
    assert [item["id"] for item in resp.json()["items"]] == [catalog["monthly"].id]


@pytest.mark.asyncio
async def test_search_by_name_or_email(client: AsyncClient, admin_headers, catalog):
    resp = await client.get("/api/v1/admin/subscriptions?search=person", headers=admin_headers)
    assert [item["id"] for item in resp.json()["items"]] == [catalog["annual"].id]

    resp = await client.get("/api/v1/admin/subscriptions?search=MEMBER@TEST", headers=admin_headers)
    assert [item["id"] for item in resp.json()["items"]] == [catalog["monthly"].id]

    # LIKE wildcards in the search term are matched literally
    resp = await client.get("/api/v1/admin/subscriptions?search=h_u", headers=admin_headers)
    assert [item["id"] for item in resp.json()["items"]] == [catalog["past_due"].id]


@pytest.mark.asyncio
async def test_unknown_status_filter_is_invalid_argument(client: AsyncClient, admin_headers, catalog):
    resp = await client.get("/api/v1/admin/subscriptions?status=paused", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_argument"


@pytest.mark.asyncio
async def test_limit_out_of_range_is_invalid_argument(client: AsyncClient, admin_headers):
    resp = await client.get("/api/v1/admin/subscriptions?limit=0", headers=admin_headers)
    assert resp.status_code == 400
    resp = await client.get("/api/v1/admin/subscriptions?limit=101", headers=admin_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_requires_admin(client: AsyncClient, member_headers):
    resp = await client.get("/api/v1/admin/subscriptions", headers=member_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_canceled_last_month_does_not_count_as_churn(member):
    sub = await create_subscription(
        member.id,
        status=SubscriptionStatus.CANCELED,
        cancel_at_period_end=True,
        created_at=_at(1, 5),
    )
    await _set_updated_at(sub.id, NOW - timedelta(days=20))
    async with async_session_maker() as session:
        stats = await subscription_stats(session, now=NOW)
    assert stats["churn_rate"] == 0.0
    assert stats["active_subscriptions"] == 0
