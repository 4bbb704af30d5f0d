"""Application settings loaded from the environment.

Every key can be overridden with a ``BANANA_`` prefixed environment variable
(``BANANA_JWT_SECRET``, ``BANANA_DATABASE_URL`` ...) or from a local ``.env``.
"""
from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .constants import MAX_RANK_LIMIT


def _parse_env_list(candidate: Any) -> List[str]:
    """Accept a JSON list or a comma separated string."""
    if candidate is None:
        return []
    if isinstance(candidate, (list, tuple)):
        return [str(item).strip() for item in candidate if str(item).strip()]
    s = str(candidate).strip()
    if not s:
        return []
    try:
        loaded = json.loads(s)
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in s.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BANANA_", env_file=".env", extra="ignore")

    database_url: str = "sqlite://banana.db"
    generate_schemas: bool = True

    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = Field(default=60 * 24, gt=0)

    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["http://localhost:8000"])

    rank_limit: int = MAX_RANK_LIMIT
    # Upper bound on every user-store round trip made from the socket layer.
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    outbound_queue_size: int = Field(default=256, gt=0)

    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> List[str]:
        return _parse_env_list(value)

    @field_validator("rank_limit")
    @classmethod
    def _clamp_rank_limit(cls, value: int) -> int:
        return max(1, min(value, MAX_RANK_LIMIT))

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
