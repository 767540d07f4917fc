from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from soundcircle.database import get_db
from soundcircle.dependencies import get_current_user
from soundcircle.models.user import User
from soundcircle.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from soundcircle.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Register a new account with nick, email and password."""
    user = await auth_service.register_user(
        db=db,
        nick=request.nick,
        email=request.email,
        password=request.password,
    )
    tokens = auth_service.issue_tokens(user.id)
    return {**tokens, "user": user}


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Sign in with email and password."""
    try:
        user = await auth_service.login_with_email(
            db=db,
            email=request.email,
            password=request.password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )

    tokens = auth_service.issue_tokens(user.id)
    return {**tokens, "user": user}


@router.post("/refresh", response_model=TokenResponse)
async def refresh(request: RefreshRequest, req: Request):
    """Rotate refresh token and issue new access + refresh pair."""
    redis_client = req.app.state.redis
    try:
        tokens = await auth_service.refresh_tokens(request.refresh_token, redis_client)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )
    return tokens


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Return the currently authenticated user."""
    return user
