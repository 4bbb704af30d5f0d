from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth_utils import get_current_user, hash_password, require_admin
from ..constants import BLOCKED_MESSAGE, DELETED_MESSAGE, Role
from ..logging_config import get_logger
from ..models import User
from ..schemas import (
    CreateUserRequest,
    ModerationResponse,
    RankEntry,
    UpdateUserRequest,
    UserMessageResponse,
    UserResponse,
)
from ..state import PresenceState, get_presence

router = APIRouter(prefix="/api", tags=["users"])
logger = get_logger(__name__)


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        username=user.username,
        email=user.email,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        role=user.role,
        score=user.score,
        is_blocked=user.is_blocked,
        is_deleted=user.is_deleted,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


async def ensure_unique(email: str, username: str) -> None:
    if await User.filter(email=email.lower()).exists():
        raise HTTPException(status_code=400, detail="Email already in use.")
    if await User.filter(username=username).exists():
        raise HTTPException(status_code=400, detail="Username already taken.")


async def _get_user_or_404(user_id: str) -> User:
    try:
        pk = uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="User not found.")
    user = await User.get_or_none(id=pk)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    return user


@router.get("/users/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return user_response(current_user)


@router.get("/ranks", response_model=List[RankEntry])
async def get_ranks(
    current_user: User = Depends(get_current_user),
    presence: PresenceState = Depends(get_presence),
):
    return await presence.leaderboard.compute_top_ranks()


# ---------------------------------------------------------------------------
# Admin user management
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserMessageResponse, status_code=status.HTTP_201_CREATED)
async def create_user(req: CreateUserRequest, admin: User = Depends(require_admin)):
    await ensure_unique(req.email, req.username)
    user = await User.create(
        username=req.username,
        email=req.email.lower(),
        password_hash=hash_password(req.password),
        display_name=req.display_name,
        avatar_url=req.avatar_url,
        role=req.role,
    )
    logger.info("user created by admin", user_id=str(user.id), admin_id=str(admin.id))
    return UserMessageResponse(message="User created successfully by admin!", user=user_response(user))


@router.get("/users", response_model=List[UserResponse])
async def list_users(admin: User = Depends(require_admin)):
    users = await User.filter(is_deleted=False).order_by("-created_at")
    return [user_response(u) for u in users]


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, admin: User = Depends(require_admin)):
    return user_response(await _get_user_or_404(user_id))


@router.put("/users/{user_id}", response_model=UserMessageResponse)
async def update_user(
    user_id: str,
    req: UpdateUserRequest,
    admin: User = Depends(require_admin),
    presence: PresenceState = Depends(get_presence),
):
    user = await _get_user_or_404(user_id)
    role_changed = req.role is not None and req.role != user.role
    if req.username and req.username != user.username:
        if await User.filter(username=req.username).exists():
            raise HTTPException(status_code=400, detail="Username already taken.")
        user.username = req.username
    if req.email and req.email.lower() != user.email:
        if await User.filter(email=req.email.lower()).exists():
            raise HTTPException(status_code=400, detail="Email already in use.")
        user.email = req.email.lower()
    if req.display_name is not None:
        user.display_name = req.display_name
    if req.avatar_url is not None:
        user.avatar_url = req.avatar_url
    if req.role is not None:
        user.role = req.role
    await user.save()
    if role_changed:
        presence.dispatcher.change_role(str(user.id), user.role)
    return UserMessageResponse(message="User updated successfully.", user=user_response(user))


async def _moderate(
    user_id: str, field: str, verb: str, message: str, done: str, presence: PresenceState
) -> ModerationResponse:
    user = await _get_user_or_404(user_id)
    if user.role == Role.ADMIN:
        raise HTTPException(status_code=400, detail=f"Cannot {verb} admin users.")
    setattr(user, field, True)
    await user.save()
    # The account is unusable from here on; kick every live session before answering.
    closed = presence.dispatcher.force_logout(str(user.id), message)
    await presence.dispatcher.broadcast_ranks()
    logger.info("user moderated", user_id=str(user.id), action=field, sessions_closed=closed)
    return ModerationResponse(message=done, user=user_response(user), sessions_closed=closed)


@router.put("/users/{user_id}/block", response_model=ModerationResponse)
async def block_user(
    user_id: str,
    admin: User = Depends(require_admin),
    presence: PresenceState = Depends(get_presence),
):
    return await _moderate(user_id, "is_blocked", "block", BLOCKED_MESSAGE, "User blocked successfully.", presence)


@router.put("/users/{user_id}/unblock", response_model=UserMessageResponse)
async def unblock_user(
    user_id: str,
    admin: User = Depends(require_admin),
    presence: PresenceState = Depends(get_presence),
):
    user = await _get_user_or_404(user_id)
    user.is_blocked = False
    await user.save()
    await presence.dispatcher.broadcast_ranks()
    return UserMessageResponse(message="User unblocked successfully.", user=user_response(user))


@router.delete("/users/{user_id}", response_model=ModerationResponse)
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    presence: PresenceState = Depends(get_presence),
):
    return await _moderate(user_id, "is_deleted", "delete", DELETED_MESSAGE, "User deleted successfully.", presence)
