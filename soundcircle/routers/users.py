from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from soundcircle.database import get_db
from soundcircle.dependencies import get_admin_user, get_current_user
from soundcircle.models.user import User
from soundcircle.schemas.base import MAX_ID
from soundcircle.schemas.users import (
    ChangeNickRequest,
    ChangeNickResponse,
    MessageResponse,
    ProfileResponse,
    ToggleAdminRequest,
    UserListResponse,
)
from soundcircle.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "user": user}


@router.put("/change-nick", response_model=ChangeNickResponse)
async def change_nick(
    data: ChangeNickRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    old_nick = await user_service.change_nick(db, user.id, data.new_nick)
    return {
        "success": True,
        "old_nick": old_nick,
        "new_nick": data.new_nick,
        "user_id": user.id,
    }


# --- Admin ---


@router.get("/list", response_model=UserListResponse)
async def list_users(
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.list_users(db)
    return {"success": True, "users": users}


@router.put("/toggleAdmin/{user_id}", response_model=MessageResponse)
async def toggle_admin(
    data: ToggleAdminRequest,
    user_id: int = Path(gt=0, le=MAX_ID),
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    target = await user_service.set_admin(db, admin, user_id, data.is_admin)
    action = "granted to" if data.is_admin else "revoked from"
    return {"success": True, "message": f"Administrator status {action} {target.nick}"}


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int = Path(gt=0, le=MAX_ID),
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    nick = await user_service.delete_user(db, admin, user_id)
    return {"success": True, "message": f"User {nick} has been deleted"}
