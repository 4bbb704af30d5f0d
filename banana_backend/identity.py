"""Handshake authentication for socket connections."""
from __future__ import annotations

import asyncio
from typing import Optional

from .auth_utils import TokenVerifier
from .errors import AccountUnavailable, InvalidToken, MissingToken, StoreUnavailable
from .logging_config import get_logger
from .schemas import UserIdentity
from .user_store import UserStore

logger = get_logger(__name__)


class IdentityVerifier:
    """Turns a handshake token into a current ``UserIdentity``.

    Performs no writes. Any failure raises an ``AuthError`` subclass so the
    caller can refuse the connection before joining channels or touching the
    registry.
    """

    def __init__(self, tokens: TokenVerifier, store: UserStore, timeout: float = 5.0):
        self.tokens = tokens
        self.store = store
        self.timeout = timeout

    async def authenticate(self, token: Optional[str]) -> UserIdentity:
        if not token:
            raise MissingToken()

        user_id = self.tokens.verify(token)

        try:
            identity = await asyncio.wait_for(self.store.find_by_id(user_id), self.timeout)
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.error("handshake lookup failed", user_id=user_id, error=repr(exc))
            raise InvalidToken("Authentication error: Token verification failed.") from exc

        if identity is None or not identity.available:
            raise AccountUnavailable()
        return identity


__all__ = ["IdentityVerifier"]
