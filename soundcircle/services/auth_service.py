import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from soundcircle.config import settings
from soundcircle.exceptions import ConflictError
from soundcircle.models.user import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def issue_tokens(user_id: int) -> dict:
    """Issue JWT access + refresh token pair."""
    now = datetime.now(timezone.utc)

    access_payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    access_token = jwt.encode(access_payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    refresh_payload = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    }
    refresh_token = jwt.encode(refresh_payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def decode_access_token(token: str) -> int:
    """Validate an access token and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise ValueError("Invalid or expired token")

    if payload.get("type") != "access":
        raise ValueError("Not an access token")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise ValueError("Malformed token subject")


async def refresh_tokens(refresh_token: str, redis_client) -> dict:
    """Validate refresh token and issue new pair. Rotate by blacklisting old refresh token."""
    try:
        payload = jwt.decode(
            refresh_token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise ValueError("Invalid refresh token")

    if payload.get("type") != "refresh":
        raise ValueError("Not a refresh token")

    jti = payload.get("jti")
    if jti:
        is_revoked = await redis_client.get(f"revoked_refresh:{jti}")
        if is_revoked:
            raise ValueError("Refresh token has been revoked")

        ttl = settings.REFRESH_TOKEN_EXPIRE_DAYS * 86400
        await redis_client.setex(f"revoked_refresh:{jti}", ttl, "1")

    return issue_tokens(int(payload["sub"]))


async def register_user(
    db: AsyncSession,
    nick: str,
    email: str,
    password: str,
) -> User:
    """Register a new account. The very first account becomes an admin."""
    errors = {}
    if (await db.execute(select(User.id).where(User.nick == nick))).first():
        errors["nick"] = "Nickname is already taken"
    if (await db.execute(select(User.id).where(User.email == email))).first():
        errors["email"] = "Email is already registered"
    if errors:
        raise ConflictError("Account already exists", errors=errors)

    existing_count = (await db.execute(select(func.count(User.id)))).scalar_one()

    user = User(
        nick=nick,
        email=email,
        password_hash=hash_password(password),
        is_admin=existing_count == 0,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same nick or email
        raise ConflictError("Account already exists", errors={})
    await db.refresh(user)

    logger.info("Registered user %s (admin=%s)", user.id, user.is_admin)
    return user


async def login_with_email(
    db: AsyncSession,
    email: str,
    password: str,
) -> User:
    """Authenticate user with email/password."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        raise ValueError("Invalid email or password")

    return user
