"""Access to persisted user records for the realtime layer.

The socket layer only ever needs three things from storage: a fresh
snapshot of one user, an atomic ``+1`` on their score and the ranked list
of active users. ``UserStore`` names that contract; ``TortoiseUserStore``
fulfils it against the ``users`` table.
"""
from __future__ import annotations

import uuid
from typing import List, Optional, Protocol, Sequence

from tortoise.exceptions import BaseORMException
from tortoise.expressions import F
from tortoise.transactions import in_transaction

from .errors import StoreUnavailable
from .models import User
from .schemas import UserIdentity


class UserStore(Protocol):
    async def find_by_id(self, user_id: str) -> Optional[UserIdentity]: ...

    async def increment_score(self, user_id: str) -> Optional[int]: ...

    async def list_active_sorted_by_score_desc(self, limit: int) -> Sequence[UserIdentity]: ...


def identity_from_user(user: User) -> UserIdentity:
    return UserIdentity(
        id=str(user.id),
        username=user.username,
        display_name=user.display_name or user.username,
        avatar_url=user.avatar_url,
        role=user.role,
        score=user.score,
        is_blocked=user.is_blocked,
        is_deleted=user.is_deleted,
    )


def _parse_id(user_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


class TortoiseUserStore:
    """``UserStore`` backed by the Tortoise ``User`` model."""

    async def find_by_id(self, user_id: str) -> Optional[UserIdentity]:
        pk = _parse_id(user_id)
        if pk is None:
            return None
        try:
            user = await User.get_or_none(id=pk)
        except BaseORMException as exc:
            raise StoreUnavailable(f"lookup of user {user_id} failed") from exc
        return identity_from_user(user) if user else None

    async def increment_score(self, user_id: str) -> Optional[int]:
        """Add one to the score of an active user and return the new value.

        Returns ``None`` when the user no longer exists or was blocked/deleted
        in the meantime. Update and read-back share one transaction, so the
        value returned is the one this increment produced.
        """
        pk = _parse_id(user_id)
        if pk is None:
            return None
        try:
            async with in_transaction() as conn:
                updated = (
                    await User.filter(id=pk, is_deleted=False, is_blocked=False)
                    .using_db(conn)
                    .update(score=F("score") + 1)
                )
                if not updated:
                    return None
                user = await User.get(id=pk, using_db=conn)
                return user.score
        except BaseORMException as exc:
            raise StoreUnavailable(f"score increment for user {user_id} failed") from exc

    async def list_active_sorted_by_score_desc(self, limit: int) -> List[UserIdentity]:
        try:
            users = await User.filter(is_deleted=False, is_blocked=False).order_by("-score").limit(limit)
        except BaseORMException as exc:
            raise StoreUnavailable("ranking query failed") from exc
        return [identity_from_user(u) for u in users]


__all__ = ["UserStore", "TortoiseUserStore", "identity_from_user"]
