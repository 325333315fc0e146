"""Actor identity and role checks at the authorization boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import assert_never

from sqlalchemy import Select

from marketadmin.core.errors import ForbiddenError
from marketadmin.models.subscription import Subscription
from marketadmin.models.user import Role, User


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Role

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(user_id=user.id, role=Role(user.role))

    @property
    def is_admin(self) -> bool:
        match self.role:
            case Role.ADMIN:
                return True
            case Role.USER:
                return False
            case _:
                assert_never(self.role)


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Administrator role required")


def scope_to_actor(stmt: Select, actor: Actor) -> Select:
    """Admins see every subscription; other actors only their own."""
    if actor.is_admin:
        return stmt
    return stmt.where(Subscription.user_id == actor.user_id)
