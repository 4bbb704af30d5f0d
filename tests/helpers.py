from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Optional

from banana_backend.constants import Role
from banana_backend.errors import StoreUnavailable
from banana_backend.registry import Connection
from banana_backend.schemas import UserIdentity

TEST_SECRET = "test-secret"


def make_identity(username: str, role: Role = Role.PLAYER, score: int = 0, **extra: Any) -> UserIdentity:
    return UserIdentity(
        id=str(uuid.uuid4()),
        username=username,
        display_name=username.title(),
        avatar_url=f"https://example.com/{username}.png",
        role=role,
        score=score,
        **extra,
    )


class FakeStore:
    """In-memory stand-in for the ``users`` table."""

    def __init__(self) -> None:
        self.users: Dict[str, UserIdentity] = {}
        self.fail = False
        self.hang = False

    def add(self, identity: UserIdentity) -> UserIdentity:
        self.users[identity.id] = identity
        return identity

    def update(self, user_id: str, **changes: Any) -> None:
        self.users[user_id] = self.users[user_id].model_copy(update=changes)

    async def _check(self) -> None:
        if self.hang:
            await asyncio.sleep(3600)
        if self.fail:
            raise StoreUnavailable("store offline")

    async def find_by_id(self, user_id: str) -> Optional[UserIdentity]:
        await self._check()
        return self.users.get(user_id)

    async def increment_score(self, user_id: str) -> Optional[int]:
        await self._check()
        user = self.users.get(user_id)
        if user is None or not user.available:
            return None
        self.update(user_id, score=user.score + 1)
        return user.score + 1

    async def list_active_sorted_by_score_desc(self, limit: int) -> List[UserIdentity]:
        await self._check()
        active = [u for u in self.users.values() if u.available]
        return sorted(active, key=lambda u: u.score, reverse=True)[:limit]


class FakeTransport:
    def __init__(self, fail_after: Optional[int] = None) -> None:
        self.sent: List[dict] = []
        self.closed_with: Optional[int] = None
        self.fail_after = fail_after

    async def send_json(self, data: Any) -> None:
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed_with = code


def drain(connection: Connection) -> List[dict]:
    """Pop every queued event (close markers excluded) off *connection*."""
    events = []
    while not connection.outbox.empty():
        item = connection.outbox.get_nowait()
        if isinstance(item, dict):
            events.append(item)
    return events


def events_of(connection: Connection, event_type: str) -> List[Any]:
    return [e["data"] for e in drain(connection) if e["type"] == event_type]


