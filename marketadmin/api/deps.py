"""FastAPI dependencies: current user and actor from JWT, admin gate, payment processor."""

from typing import Annotated

from fastapi import Depends, Request
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketadmin.core.auth import decode_token
from marketadmin.core.authz import Actor, require_admin
from marketadmin.core.errors import UnauthorizedError
from marketadmin.db.session import get_db
from marketadmin.models.user import User
from marketadmin.services.payment_processor import PaymentProcessor, RoutingProcessor, get_payment_processor


async def get_current_user(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise UnauthorizedError("Not authenticated")
    try:
        payload = decode_token(token)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise UnauthorizedError("Invalid token")
    try:
        user_id = int(user_id_str)
    except ValueError:
        raise UnauthorizedError("Invalid token")
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("User not found")
    return user


async def get_current_actor(
    user: Annotated[User, Depends(get_current_user)],
) -> Actor:
    return Actor.from_user(user)


async def get_admin_actor(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """Require the ADMIN role. Raises 403 otherwise."""
    require_admin(actor)
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(get_admin_actor)]
Processor = Annotated[RoutingProcessor | PaymentProcessor, Depends(get_payment_processor)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
