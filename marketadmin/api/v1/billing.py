"""Billing: current user's subscription, self-service cancel/reactivate, plan table."""

from fastapi import APIRouter, Request
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from marketadmin.api.deps import CurrentActor, DbSession, Processor
from marketadmin.core.errors import NotFoundError
from marketadmin.models.subscription import Subscription
from marketadmin.schemas.subscription import subscription_to_response
from marketadmin.services import subscription_lifecycle as lifecycle
from marketadmin.services.plans import PLANS

router = APIRouter(prefix="/billing", tags=["billing"])


async def _own_subscription(session, actor) -> Subscription | None:
    r = await session.execute(
        select(Subscription)
        .where(Subscription.user_id == actor.user_id)
        .options(selectinload(Subscription.user))
    )
    return r.scalar_one_or_none()


async def _own_subscription_id(session, actor) -> str:
    sub = await _own_subscription(session, actor)
    if sub is None:
        raise NotFoundError("Subscription not found")
    return sub.id


@router.get("/plans", summary="List plans")
async def list_plans() -> dict:
    return {"plans": [plan.to_dict() for plan in PLANS.values()]}


@router.get(
    "/subscription",
    summary="Get current subscription status",
    responses={401: {"description": "Not authenticated"}},
)
async def get_subscription(
    session: DbSession,
    actor: CurrentActor,
) -> dict:
    """Return current subscription info for the authenticated user."""
    sub = await _own_subscription(session, actor)
    if not sub:
        return {"has_subscription": False, "subscription": None}
    return {"has_subscription": True, "subscription": subscription_to_response(sub)}


@router.post(
    "/cancel",
    summary="Cancel own subscription",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "No subscription"}},
)
async def cancel_own_subscription(
    request: Request,
    session: DbSession,
    actor: CurrentActor,
    processor: Processor,
) -> dict:
    sub_id = await _own_subscription_id(session, actor)
    sub = await lifecycle.cancel_subscription(session, processor, sub_id, actor, request=request)
    await session.commit()
    return {
        "success": True,
        "message": "Subscription canceled successfully",
        "subscription": subscription_to_response(sub),
    }


@router.post(
    "/reactivate",
    summary="Reactivate own subscription",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "No subscription"}},
)
async def reactivate_own_subscription(
    request: Request,
    session: DbSession,
    actor: CurrentActor,
    processor: Processor,
) -> dict:
    sub_id = await _own_subscription_id(session, actor)
    sub = await lifecycle.reactivate_subscription(session, processor, sub_id, actor, request=request)
    await session.commit()
    return {
        "success": True,
        "message": "Subscription reactivated successfully",
        "subscription": subscription_to_response(sub),
    }
