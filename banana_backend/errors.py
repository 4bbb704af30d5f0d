"""Exception taxonomy for the realtime layer.

Authentication errors end a handshake, action errors end a single request,
delivery errors are expected races and never surface to callers.
"""
from __future__ import annotations

from typing import Optional

from .constants import (
    CLOSE_ACCOUNT_UNAVAILABLE,
    CLOSE_INVALID_TOKEN,
    CLOSE_MISSING_TOKEN,
)


class AuthError(Exception):
    """Handshake rejected; the connection is closed with *close_code*."""

    close_code: int = CLOSE_INVALID_TOKEN
    default_message = "Authentication error."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class MissingToken(AuthError):
    close_code = CLOSE_MISSING_TOKEN
    default_message = "Authentication error: No token provided."


class InvalidToken(AuthError):
    close_code = CLOSE_INVALID_TOKEN
    default_message = "Authentication error: Token verification failed."


class AccountUnavailable(AuthError):
    close_code = CLOSE_ACCOUNT_UNAVAILABLE
    default_message = "Authentication error: User not found, deleted, or blocked."


class ActionError(Exception):
    """A single inbound action could not be completed and is dropped."""


class IdentityGone(ActionError):
    pass


class StoreUnavailable(ActionError):
    pass


class DeliveryError(Exception):
    """The transport went away while an event was being written."""


class InvalidTransition(RuntimeError):
    pass


__all__ = [
    "AuthError",
    "MissingToken",
    "InvalidToken",
    "AccountUnavailable",
    "ActionError",
    "IdentityGone",
    "StoreUnavailable",
    "DeliveryError",
    "InvalidTransition",
]
