"""Friend-relationship lifecycle: request, accept, reject, remove.

A friendship is one row per unordered pair of users. The pair is also stored
in canonical order (``user_low_id < user_high_id``) under a unique constraint,
so the database refuses a second row for the same two users no matter who
asked first. All functions run inside the caller's request transaction
(see ``soundcircle.database.get_db``).
"""

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import String, case, cast, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from soundcircle.config import settings
from soundcircle.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
)
from soundcircle.models.friendship import ACCEPTED, PENDING, Friendship
from soundcircle.models.user import User

logger = logging.getLogger(__name__)

SEARCH_BY_ID = "id"
SEARCH_BY_NICK_OR_EMAIL = "nick_or_email"

_DIGITS = re.compile(r"[0-9]+")


async def list_friendships(db: AsyncSession, user_id: int) -> list[dict]:
    """All friendships and pending requests the user is part of, with the other party's public fields."""
    friend_id = case(
        (Friendship.requester_id == user_id, Friendship.addressee_id),
        else_=Friendship.requester_id,
    )
    result = await db.execute(
        select(Friendship, User)
        .join(User, User.id == friend_id)
        .where(
            or_(
                Friendship.requester_id == user_id,
                Friendship.addressee_id == user_id,
            )
        )
        .order_by(Friendship.id)
    )

    friendships = []
    for f, friend in result.all():
        friendships.append({
            "id": f.id,
            "requester_id": f.requester_id,
            "addressee_id": f.addressee_id,
            "status": f.status,
            "direction": "outgoing" if f.requester_id == user_id else "incoming",
            "created_at": f.created_at,
            "friend": {
                "id": friend.id,
                "nick": friend.nick,
                "email": friend.email,
            },
        })
    return friendships


async def search_candidates(
    db: AsyncSession, user_id: int, query: str, mode: str = SEARCH_BY_NICK_OR_EMAIL
) -> list[User]:
    """Find other users to befriend.

    ``id`` takes digits only and matches every user whose id contains them as
    a substring ("42" finds 42, 142, 420...), ordered by id. Any other mode
    (``nick_or_email`` by default) does a case-insensitive substring match on
    nick or email, ordered by nick. The caller is never part of the result.
    """
    query = (query or "").strip()
    if not query:
        raise BadRequestError("Query parameter is required")

    stmt = select(User).where(User.id != user_id)

    if mode == SEARCH_BY_ID:
        if not _DIGITS.fullmatch(query):
            raise BadRequestError("Searching by id requires digits only")
        stmt = stmt.where(cast(User.id, String).contains(query)).order_by(User.id)
    else:
        stmt = stmt.where(
            or_(
                User.nick.icontains(query, autoescape=True),
                User.email.icontains(query, autoescape=True),
            )
        ).order_by(User.nick)

    result = await db.execute(stmt.limit(settings.SEARCH_RESULT_LIMIT))
    return list(result.scalars().all())


async def request_friendship(
    db: AsyncSession, requester_id: int, addressee_id: int, redis_client=None
) -> int:
    """Send a friend request. Returns the new friendship id.

    Raises ConflictError tagged ``outgoing`` / ``incoming`` / ``accepted`` when
    the pair already has a row; an ``incoming`` conflict carries the id of the
    other user's pending request so the caller can accept it instead.
    """
    if requester_id == addressee_id:
        raise BadRequestError("Cannot send a friend request to yourself")

    if await db.get(User, addressee_id) is None:
        raise NotFoundError("User not found")

    existing = await _find_pair(db, requester_id, addressee_id)
    if existing is not None:
        _raise_existing(existing, requester_id)

    # Only requests that would create a row count against the cap
    today_key = None
    if redis_client is not None:
        today_key = f"friend_requests:{requester_id}:{datetime.now(timezone.utc).date()}"
        count = await redis_client.get(today_key)
        if count and int(count) >= settings.FRIEND_REQUEST_DAILY_LIMIT:
            raise RateLimitedError(
                f"Daily friend request limit reached ({settings.FRIEND_REQUEST_DAILY_LIMIT}/day)"
            )

    low, high = Friendship.canonical_pair(requester_id, addressee_id)
    friendship = Friendship(
        requester_id=requester_id,
        addressee_id=addressee_id,
        user_low_id=low,
        user_high_id=high,
        status=PENDING,
        created_at=datetime.now(timezone.utc),
    )
    db.add(friendship)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent request for the same pair committed first
        await db.rollback()
        existing = await _find_pair(db, requester_id, addressee_id)
        if existing is None:
            raise
        logger.warning(
            "Concurrent friend request between %s and %s resolved to friendship %s",
            requester_id, addressee_id, existing.id,
        )
        _raise_existing(existing, requester_id)

    if today_key is not None:
        await redis_client.incr(today_key)
        await redis_client.expire(today_key, 86400)

    logger.info(
        "Friend request %s: %s -> %s", friendship.id, requester_id, addressee_id
    )
    return friendship.id


async def accept_friendship(db: AsyncSession, friendship_id: int, user_id: int) -> None:
    """Accept a pending request. Only the addressee may accept; accepting twice is a no-op."""
    friendship = await _get_for_update(db, friendship_id)

    if friendship.addressee_id != user_id:
        raise ForbiddenError("Only the recipient can accept this friend request")

    if friendship.status == ACCEPTED:
        return

    friendship.status = ACCEPTED
    await db.flush()
    logger.info("Friendship %s accepted by %s", friendship_id, user_id)


async def reject_friendship(db: AsyncSession, friendship_id: int, user_id: int) -> None:
    """Reject (delete) a friendship. Only the addressee may reject, whatever the status."""
    friendship = await _get_for_update(db, friendship_id)

    if friendship.addressee_id != user_id:
        raise ForbiddenError("Only the recipient can reject this friend request")

    await db.delete(friendship)
    await db.flush()
    logger.info("Friendship %s rejected by %s", friendship_id, user_id)


async def remove_friendship(db: AsyncSession, friendship_id: int, user_id: int) -> None:
    """Remove a friend, or withdraw a pending request. Either party may do it."""
    friendship = await _get_for_update(db, friendship_id)

    if user_id not in (friendship.requester_id, friendship.addressee_id):
        raise ForbiddenError("You are not part of this friendship")

    await db.delete(friendship)
    await db.flush()
    logger.info(
        "Friendship %s (%s) removed by %s", friendship_id, friendship.status, user_id
    )


async def _find_pair(db: AsyncSession, user_a: int, user_b: int) -> Friendship | None:
    low, high = Friendship.canonical_pair(user_a, user_b)
    result = await db.execute(
        select(Friendship).where(
            Friendship.user_low_id == low,
            Friendship.user_high_id == high,
        )
    )
    return result.scalar_one_or_none()


async def _get_for_update(db: AsyncSession, friendship_id: int) -> Friendship:
    result = await db.execute(
        select(Friendship).where(Friendship.id == friendship_id).with_for_update()
    )
    friendship = result.scalar_one_or_none()
    if friendship is None:
        raise NotFoundError("Friend request not found")
    return friendship


def _raise_existing(existing: Friendship, requester_id: int):
    if existing.status == ACCEPTED:
        raise ConflictError("You are already friends with this user", status="accepted")
    if existing.requester_id == requester_id:
        raise ConflictError(
            "You have already sent a friend request to this user", status="outgoing"
        )
    raise ConflictError(
        "This user has already sent you a friend request",
        status="incoming",
        friendshipId=existing.id,
    )
