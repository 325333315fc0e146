"""Admin subscription list with filters and stats."""

from fastapi import APIRouter, Query

from marketadmin.api.deps import AdminActor, DbSession
from marketadmin.schemas.pagination import PageParams, PaginatedResponse
from marketadmin.schemas.subscription import subscription_to_response
from marketadmin.services.subscription_stats import SubscriptionFilter, list_subscriptions, subscription_stats

router = APIRouter(prefix="/admin/subscriptions", tags=["admin"])


@router.get(
    "",
    summary="List subscriptions with stats",
    responses={401: {"description": "Not authenticated"}, 403: {"description": "Administrator role required"}},
)
async def admin_list_subscriptions(
    session: DbSession,
    actor: AdminActor,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query("", max_length=255),
    status: str = Query("all", description="all | ACTIVE | CANCELED | PAST_DUE"),
    plan: str = Query("all", description="all or a plan id"),
) -> dict:
    params = PageParams(page=page, limit=limit)
    flt = SubscriptionFilter(search=search, status=status, plan=plan)
    rows, total = await list_subscriptions(session, flt, params.offset, params.limit)
    result = PaginatedResponse.build([subscription_to_response(s) for s in rows], total, params)
    stats = await subscription_stats(session)
    return {**result.model_dump(), "stats": stats}
