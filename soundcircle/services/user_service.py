import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from soundcircle.exceptions import BadRequestError, ConflictError, NotFoundError
from soundcircle.models.friendship import Friendship
from soundcircle.models.user import User

logger = logging.getLogger(__name__)


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def change_nick(db: AsyncSession, user_id: int, new_nick: str) -> str:
    """Rename the user. Returns the previous nick."""
    taken = await db.execute(
        select(User.id).where(User.nick == new_nick, User.id != user_id)
    )
    if taken.first():
        raise ConflictError("This nickname is already taken")

    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    old_nick = user.nick
    user.nick = new_nick
    await db.flush()
    logger.info("User %s changed nick %r -> %r", user.id, old_nick, new_nick)
    return old_nick


async def set_admin(db: AsyncSession, admin: User, user_id: int, is_admin: bool) -> User:
    """Grant or revoke admin rights. Admins cannot change their own flag."""
    if user_id == admin.id:
        raise BadRequestError("You cannot change your own administrator status")

    target = await db.get(User, user_id)
    if target is None:
        raise NotFoundError("User not found")

    target.is_admin = is_admin
    await db.flush()
    logger.info("Admin %s set is_admin=%s on user %s", admin.id, is_admin, user_id)
    return target


async def delete_user(db: AsyncSession, admin: User, user_id: int) -> str:
    """Delete an account together with its friendships. Returns the deleted nick."""
    if user_id == admin.id:
        raise BadRequestError("You cannot delete your own account")

    target = await db.get(User, user_id)
    if target is None:
        raise NotFoundError("User not found")

    nick = target.nick
    await db.execute(
        delete(Friendship).where(
            or_(
                Friendship.requester_id == user_id,
                Friendship.addressee_id == user_id,
            )
        )
    )
    await db.delete(target)
    await db.flush()
    logger.info("Admin %s deleted user %s (%s)", admin.id, user_id, nick)
    return nick
