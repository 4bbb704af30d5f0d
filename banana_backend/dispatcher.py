"""Per-connection event handling for the realtime layer.

``EventDispatcher`` drives every connection through
``UNAUTHENTICATED -> AUTHENTICATED -> ACTIVE -> CLOSED``, performs the single
user-triggered mutation (a click) and fans the results out through the
``ChannelRouter``. It is framework-agnostic: the WebSocket router feeds it
decoded messages and it only ever talks to ``Connection`` objects.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from .channels import ChannelRouter, RoleChannel
from .constants import (
    CLOSE_FORCED_LOGOUT,
    CLOSE_GOING_AWAY,
    EVENT_BANANA_CLICK,
    EVENT_FORCE_LOGOUT,
    EVENT_PLAYER_SCORE_UPDATE,
    EVENT_RANK_UPDATE,
    EVENT_REQUEST_INITIAL_RANKS,
    EVENT_USER_STATUS_UPDATE,
    STATUS_OFFLINE,
    STATUS_ONLINE,
    Role,
)
from .errors import ActionError, IdentityGone, StoreUnavailable
from .leaderboard import LeaderboardAggregator
from .logging_config import get_logger
from .registry import Connection, ConnectionRegistry, ConnectionState
from .schemas import ForceLogout, PlayerScoreUpdate, UserIdentity, UserStatusUpdate
from .user_store import UserStore

logger = get_logger(__name__)

Handler = Callable[[Connection], Awaitable[None]]


class EventDispatcher:
    def __init__(
        self,
        registry: ConnectionRegistry,
        router: ChannelRouter,
        store: UserStore,
        leaderboard: LeaderboardAggregator,
        store_timeout: float = 5.0,
    ):
        self.registry = registry
        self.router = router
        self.store = store
        self.leaderboard = leaderboard
        self.store_timeout = store_timeout
        self._handlers: Dict[str, Handler] = {
            EVENT_BANANA_CLICK: self.handle_increment,
            EVENT_REQUEST_INITIAL_RANKS: self.handle_request_ranks,
        }

    # ---------------------------------------------------------------------
    # Connection lifecycle
    # ---------------------------------------------------------------------

    def connect(self, connection: Connection, identity: UserIdentity) -> None:
        """Attach a freshly authenticated connection to channels and the registry."""
        connection.authenticate(identity)
        self.router.join_personal(connection)
        self.router.join_role(connection, Role.ADMIN)
        came_online = self.registry.register(identity.id, connection)
        logger.info(
            "client connected",
            connection_id=connection.connection_id,
            user_id=identity.id,
            username=identity.username,
            sessions=self.registry.session_count(identity.id),
        )
        if came_online:
            self._announce_status(identity, STATUS_ONLINE)

    def disconnect(self, connection: Connection) -> None:
        """Forget *connection*. Safe to call more than once."""
        if connection.state is not ConnectionState.CLOSED:
            connection.mark_closed()
        self.router.leave_all(connection)
        identity = connection.identity
        if identity is None:
            return
        went_offline = self.registry.unregister(identity.id, connection.connection_id)
        if went_offline is None:
            return
        logger.info(
            "client disconnected",
            connection_id=connection.connection_id,
            user_id=identity.id,
            remaining_sessions=self.registry.session_count(identity.id),
        )
        if went_offline:
            self._announce_status(identity, STATUS_OFFLINE)

    def force_logout(self, user_id: str, message: str) -> int:
        """Notify and close every live connection of *user_id*.

        Returns once all ``force_logout`` events are queued; the transport
        closes follow asynchronously, one per connection, behind the event.
        """
        connections = self.registry.connections_of(user_id)
        for connection in connections:
            self.router.send_to_connection(connection, EVENT_FORCE_LOGOUT, ForceLogout(message=message).model_dump(by_alias=True))
            connection.close(code=CLOSE_FORCED_LOGOUT, reason=message)
            self.disconnect(connection)
        if connections:
            logger.info("forced logout", user_id=user_id, sessions=len(connections))
        return len(connections)

    def change_role(self, user_id: str, role: Role) -> int:
        """Move every live connection of *user_id* to the channels of *role*."""
        connections = self.registry.connections_of(user_id)
        for connection in connections:
            if connection.identity is None or connection.identity.role == role:
                continue
            connection.identity = connection.identity.model_copy(update={"role": role})
            self.router.leave(connection, RoleChannel(Role.ADMIN))
            self.router.join_role(connection, Role.ADMIN)
        if connections:
            logger.info("role changed on live sessions", user_id=user_id, role=role.value, sessions=len(connections))
        return len(connections)

    def shutdown(self) -> None:
        """Drop every connection; used when the process stops."""
        for connection in self.registry.all_connections():
            connection.close(code=CLOSE_GOING_AWAY, reason="Server shutting down")
            connection.mark_closed()
            self.router.leave_all(connection)
        self.registry.clear()

    # ---------------------------------------------------------------------
    # Inbound actions
    # ---------------------------------------------------------------------

    async def handle(self, connection: Connection, message: Any) -> None:
        """Route one decoded client message. Unusable traffic is dropped."""
        if not connection.is_authenticated:
            logger.warning("message from unauthenticated connection dropped", connection_id=connection.connection_id)
            return
        event = message.get("type") if isinstance(message, dict) else None
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.debug("unknown event dropped", connection_id=connection.connection_id, event_type=event)
            return
        if connection.state is ConnectionState.AUTHENTICATED:
            connection.transition(ConnectionState.ACTIVE)
        await handler(connection)

    async def handle_increment(self, connection: Connection) -> None:
        user_id = connection.owner_user_id
        try:
            identity = await self._resolve(user_id)
            new_score = await self._store_call(self.store.increment_score(user_id))
            if new_score is None:
                raise IdentityGone(f"user {user_id} vanished before increment")
        except ActionError as exc:
            logger.error("banana_click dropped", connection_id=connection.connection_id, user_id=user_id, error=repr(exc))
            return
        except Exception:
            logger.exception("banana_click failed", connection_id=connection.connection_id, user_id=user_id)
            return

        identity = identity.model_copy(update={"score": new_score})
        for session in self.registry.connections_of(user_id):
            session.identity = identity
        logger.info("banana click", user_id=user_id, username=identity.username, score=new_score)

        self.router.send_to_user(
            user_id,
            EVENT_PLAYER_SCORE_UPDATE,
            PlayerScoreUpdate(user_id=user_id, score=new_score).model_dump(by_alias=True),
        )
        self._announce_status(identity, STATUS_ONLINE)
        await self.broadcast_ranks()

    async def handle_request_ranks(self, connection: Connection) -> None:
        ranks = await self.leaderboard.compute_top_ranks()
        self.router.send_to_connection(connection, EVENT_RANK_UPDATE, [r.model_dump(by_alias=True) for r in ranks])

    async def broadcast_ranks(self) -> None:
        ranks = await self.leaderboard.compute_top_ranks()
        self.router.broadcast(EVENT_RANK_UPDATE, [r.model_dump(by_alias=True) for r in ranks])

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------

    async def _store_call(self, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, self.store_timeout)
        except asyncio.TimeoutError as exc:
            raise StoreUnavailable(f"user store did not answer within {self.store_timeout}s") from exc

    async def _resolve(self, user_id: Optional[str]) -> UserIdentity:
        """Fetch the current identity; cached snapshots are never trusted for writes."""
        if user_id is None:
            raise IdentityGone("connection has no owner")
        identity = await self._store_call(self.store.find_by_id(user_id))
        if identity is None or not identity.available:
            raise IdentityGone(f"user {user_id} is missing, blocked or deleted")
        return identity

    def _announce_status(self, identity: UserIdentity, status: str) -> None:
        update = UserStatusUpdate(
            user_id=identity.id,
            username=identity.username,
            display_name=identity.display_name,
            status=status,
            score=identity.score,
            active_session_count=self.registry.session_count(identity.id),
        )
        self.router.send_to_role(Role.ADMIN, EVENT_USER_STATUS_UPDATE, update.model_dump(by_alias=True))


__all__ = ["EventDispatcher"]
