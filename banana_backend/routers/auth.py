from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth_utils import TokenVerifier, get_token_verifier, hash_password, verify_password
from ..logging_config import get_logger
from ..models import User
from ..schemas import AuthResponse, LoginRequest, RegisterRequest
from .users import ensure_unique, user_response

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = get_logger(__name__)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(req: RegisterRequest, verifier: TokenVerifier = Depends(get_token_verifier)):
    await ensure_unique(req.email, req.username)
    user = await User.create(
        username=req.username,
        email=req.email.lower(),
        password_hash=hash_password(req.password),
        display_name=req.display_name,
        avatar_url=req.avatar_url,
    )
    logger.info("user registered", user_id=str(user.id), username=user.username)
    return AuthResponse(
        message="User registered successfully!",
        token=verifier.create(str(user.id), user.role),
        user=user_response(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(req: LoginRequest, verifier: TokenVerifier = Depends(get_token_verifier)):
    user = await User.filter(email=req.email.lower()).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    if user.is_deleted or user.is_blocked:
        raise HTTPException(status_code=403, detail="Account is blocked or deleted.")
    return AuthResponse(
        message="Login successful!",
        token=verifier.create(str(user.id), user.role),
        user=user_response(user),
    )
