from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import Settings
from .constants import Role
from .errors import InvalidToken
from .models import User

# -----------------------------
# Password hashing helpers
# -----------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    """Return a secure bcrypt hash of *password*."""
    return pwd_context.hash(password)

def verify_password(password: str, hashed: str) -> bool:
    """Verify *password* against *hashed* bcrypt digest."""
    return pwd_context.verify(password, hashed)

# -----------------------------
# Bearer tokens
# -----------------------------

class TokenVerifier:
    """Issues and checks the HS256 tokens handed out at login."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_minutes: int = 60 * 24):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenVerifier":
        return cls(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expires_minutes)

    def create(self, user_id: str, role: Role, expires_in: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": str(user_id),
            "role": Role(role).value,
            "iat": now,
            "exp": now + (expires_in if expires_in is not None else timedelta(minutes=self.expires_minutes)),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Return the user id embedded in *token*.

        Raises
        ------
        InvalidToken
            If the signature, expiry or payload shape is wrong.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise InvalidToken("Authentication error: Token expired.") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc
        user_id = payload.get("id")
        if not user_id:
            raise InvalidToken()
        return str(user_id)

# -----------------------------
# FastAPI dependency helpers
# -----------------------------

security = HTTPBearer(auto_error=False)

def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.presence.token_verifier

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> User:
    """Resolve the Bearer token to an active *User* instance.

    Raises
    ------
    HTTPException
        401 if the token is missing or invalid, 403 if the account is
        blocked or deleted.
    """
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized, no token")
    try:
        user_id = verifier.verify(credentials.credentials)
    except InvalidToken:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized, token failed")
    try:
        user: Optional[User] = await User.filter(id=uuid.UUID(user_id)).first()
    except ValueError:
        user = None
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized, user not found")
    if user.is_blocked or user.is_deleted:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is blocked or deleted")
    return user

async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized as an admin")
    return current_user

__all__ = [
    "pwd_context",
    "hash_password",
    "verify_password",
    "TokenVerifier",
    "security",
    "get_token_verifier",
    "get_current_user",
    "require_admin",
]
