"""Pydantic data schemas used across the backend service.

This module centralises all models so that other packages can import
from a single location instead of sprinkling the definitions across
multiple files. Everything that goes over the wire is serialised with
camelCase aliases (``model_dump(by_alias=True)``).
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .constants import Role


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------
# Realtime runtime
# -----------------------------

class UserIdentity(CamelModel):
    """Read snapshot of a user record taken at connection/action time."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    role: Role = Role.PLAYER
    score: int = Field(default=0, ge=0)
    is_blocked: bool = False
    is_deleted: bool = False

    @property
    def available(self) -> bool:
        return not (self.is_blocked or self.is_deleted)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class RankEntry(CamelModel):
    """Slim, derived leaderboard row."""

    user_id: str
    username: str
    display_name: str
    avatar_ref: Optional[str] = None
    score: int


class PlayerScoreUpdate(CamelModel):
    user_id: str
    score: int


class UserStatusUpdate(CamelModel):
    user_id: str
    username: str
    display_name: str
    status: Literal["online", "offline"]
    score: int
    active_session_count: int


class ForceLogout(CamelModel):
    message: str


# -----------------------------
# REST request / response models
# -----------------------------

class RegisterRequest(CamelModel):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class CreateUserRequest(RegisterRequest):
    role: Role = Role.PLAYER


class UpdateUserRequest(CamelModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    role: Optional[Role] = None


class UserResponse(CamelModel):
    id: str
    username: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Role
    score: int
    is_blocked: bool
    is_deleted: bool
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserResponse


class UserMessageResponse(CamelModel):
    message: str
    user: UserResponse


class ModerationResponse(CamelModel):
    """Result of a block/delete, including how many live sessions were logged out."""

    message: str
    user: UserResponse
    sessions_closed: int


__all__ = [
    "CamelModel",
    # runtime
    "UserIdentity",
    "RankEntry",
    "PlayerScoreUpdate",
    "UserStatusUpdate",
    "ForceLogout",
    # REST
    "RegisterRequest",
    "LoginRequest",
    "CreateUserRequest",
    "UpdateUserRequest",
    "UserResponse",
    "AuthResponse",
    "UserMessageResponse",
    "ModerationResponse",
]
