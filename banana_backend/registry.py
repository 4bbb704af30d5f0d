"""Connections and the registry of who is online.

``Connection`` wraps one live WebSocket together with its outbound queue and
lifecycle state. ``ConnectionRegistry`` maps user ids to their live
connections and is the only source of truth for presence.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Set

from .constants import CLOSE_GOING_AWAY
from .errors import DeliveryError, InvalidTransition
from .logging_config import get_logger
from .schemas import UserIdentity

logger = get_logger(__name__)


class Transport(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class ConnectionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


_TRANSITIONS: Dict[ConnectionState, FrozenSet[ConnectionState]] = {
    ConnectionState.UNAUTHENTICATED: frozenset({ConnectionState.AUTHENTICATED, ConnectionState.CLOSED}),
    ConnectionState.AUTHENTICATED: frozenset({ConnectionState.ACTIVE, ConnectionState.CLOSED}),
    ConnectionState.ACTIVE: frozenset({ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}


@dataclass(frozen=True)
class _CloseMarker:
    code: int
    reason: Optional[str] = None


class Connection:
    """One live transport session.

    Outbound events are queued with ``send`` and written by ``run_writer`` in
    order, so callers never suspend on a slow client.
    """

    def __init__(self, transport: Optional[Transport] = None, queue_size: int = 256):
        self.connection_id = uuid.uuid4().hex
        self.transport = transport
        self.state = ConnectionState.UNAUTHENTICATED
        self.identity: Optional[UserIdentity] = None
        self.joined_channels: Set[Any] = set()
        self.connected_at: Optional[datetime] = None
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closing = False

    def __repr__(self) -> str:
        return f"<Connection {self.connection_id} user={self.owner_user_id} state={self.state.value}>"

    @property
    def owner_user_id(self) -> Optional[str]:
        return self.identity.id if self.identity else None

    @property
    def is_authenticated(self) -> bool:
        return self.state in (ConnectionState.AUTHENTICATED, ConnectionState.ACTIVE)

    # -------------------- Lifecycle -------------------- #

    def transition(self, new_state: ConnectionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        self.state = new_state

    def authenticate(self, identity: UserIdentity) -> None:
        self.transition(ConnectionState.AUTHENTICATED)
        self.identity = identity
        self.connected_at = datetime.now(timezone.utc)

    def mark_closed(self) -> None:
        if self.state is not ConnectionState.CLOSED:
            self.transition(ConnectionState.CLOSED)

    # -------------------- Outbound -------------------- #

    def send(self, event: str, payload: Any) -> bool:
        """Queue *event* for delivery. Returns ``False`` if it was dropped."""
        if self._closing or self.state is ConnectionState.CLOSED:
            return False
        try:
            self.outbox.put_nowait({"type": event, "data": payload})
        except asyncio.QueueFull:
            logger.warning("outbound queue full, dropping event", connection_id=self.connection_id, event_type=event)
            return False
        return True

    def close(self, code: int = CLOSE_GOING_AWAY, reason: Optional[str] = None) -> None:
        """Queue a transport close behind everything already queued."""
        if self._closing:
            return
        self._closing = True
        try:
            self.outbox.put_nowait(_CloseMarker(code, reason))
        except asyncio.QueueFull:
            # Make room for the close; the client is too far behind to matter.
            while not self.outbox.empty():
                self.outbox.get_nowait()
            self.outbox.put_nowait(_CloseMarker(code, reason))

    async def run_writer(self) -> None:
        """Drain the outbox into the transport until closed."""
        if self.transport is None:
            return
        while True:
            item = await self.outbox.get()
            if isinstance(item, _CloseMarker):
                try:
                    await self.transport.close(code=item.code, reason=item.reason)
                except Exception as exc:
                    logger.debug("transport close failed", connection_id=self.connection_id, error=repr(exc))
                return
            try:
                await self._write(item)
            except DeliveryError:
                return

    async def _write(self, message: Dict[str, Any]) -> None:
        try:
            await self.transport.send_json(message)
        except Exception as exc:
            # Peer went away between queueing and writing.
            raise DeliveryError(str(exc)) from exc


class ConnectionRegistry:
    """user id -> live connections.

    A user key exists only while at least one connection for that user is
    registered. Mutations never await, so the first/last connection check and
    the set update happen as one step on the event loop.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Dict[str, Connection]] = {}

    def register(self, user_id: str, connection: Connection) -> bool:
        """Add *connection*; return ``True`` if the user just came online."""
        sessions = self._connections.get(user_id)
        came_online = sessions is None
        if sessions is None:
            sessions = self._connections[user_id] = {}
        sessions[connection.connection_id] = connection
        return came_online

    def unregister(self, user_id: str, connection_id: str) -> Optional[bool]:
        """Remove a connection.

        Returns ``None`` if it was not registered, ``True`` if it was the
        user's last connection (user went offline), else ``False``.
        """
        sessions = self._connections.get(user_id)
        if sessions is None or connection_id not in sessions:
            return None
        del sessions[connection_id]
        if not sessions:
            del self._connections[user_id]
            return True
        return False

    def connections_of(self, user_id: str) -> Set[Connection]:
        return set(self._connections.get(user_id, {}).values())

    def session_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, {}))

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    def contains(self, connection: Connection) -> bool:
        owner = connection.owner_user_id
        return owner is not None and connection.connection_id in self._connections.get(owner, {})

    def online_user_ids(self) -> List[str]:
        return list(self._connections)

    def all_connections(self) -> List[Connection]:
        return [conn for sessions in self._connections.values() for conn in sessions.values()]

    def clear(self) -> None:
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)


__all__ = ["Connection", "ConnectionState", "ConnectionRegistry", "Transport"]
