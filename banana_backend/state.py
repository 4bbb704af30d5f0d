"""Process-wide runtime state for the realtime layer.

``PresenceState`` owns the registry, router and dispatcher for the life of
the server process. The app lifespan builds one, stores it on
``app.state.presence`` and tears it down on shutdown; nothing here is a
module-level singleton.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Request, WebSocket

from .auth_utils import TokenVerifier
from .channels import ChannelRouter
from .config import Settings
from .dispatcher import EventDispatcher
from .identity import IdentityVerifier
from .leaderboard import LeaderboardAggregator
from .registry import Connection, ConnectionRegistry
from .user_store import TortoiseUserStore, UserStore


class PresenceState:
    def __init__(
        self,
        settings: Settings,
        store: Optional[UserStore] = None,
        token_verifier: Optional[TokenVerifier] = None,
    ):
        self.settings = settings
        self.store: UserStore = store if store is not None else TortoiseUserStore()
        self.token_verifier = token_verifier or TokenVerifier.from_settings(settings)
        self.registry = ConnectionRegistry()
        self.router = ChannelRouter(self.registry)
        self.identity = IdentityVerifier(self.token_verifier, self.store, timeout=settings.store_timeout_seconds)
        self.leaderboard = LeaderboardAggregator(
            self.store, default_limit=settings.rank_limit, timeout=settings.store_timeout_seconds
        )
        self.dispatcher = EventDispatcher(
            self.registry,
            self.router,
            self.store,
            self.leaderboard,
            store_timeout=settings.store_timeout_seconds,
        )
        self.closed = False

    def new_connection(self, transport) -> Connection:
        return Connection(transport, queue_size=self.settings.outbound_queue_size)

    def shutdown(self) -> None:
        if self.closed:
            return
        self.dispatcher.shutdown()
        self.closed = True


def get_presence(request: Request) -> PresenceState:
    return request.app.state.presence


def get_ws_presence(ws: WebSocket) -> PresenceState:
    return ws.app.state.presence


__all__ = ["PresenceState", "get_presence", "get_ws_presence"]
