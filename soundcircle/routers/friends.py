from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from soundcircle.database import get_db
from soundcircle.dependencies import get_current_user
from soundcircle.models.user import User
from soundcircle.schemas.base import MAX_ID
from soundcircle.schemas.friends import (
    ActionResponse,
    FriendListResponse,
    FriendRequestCreate,
    FriendRequestResponse,
    SearchResponse,
)
from soundcircle.services import friend_service

router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("", response_model=FriendListResponse)
@router.get("/list", response_model=FriendListResponse, include_in_schema=False)
async def list_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    friendships = await friend_service.list_friendships(db, user.id)
    return {"success": True, "friendships": friendships}


@router.get("/search", response_model=SearchResponse)
async def search_users(
    query: str = Query(""),
    search_type: str = Query(friend_service.SEARCH_BY_NICK_OR_EMAIL, alias="searchType"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    users = await friend_service.search_candidates(db, user.id, query, search_type)
    return {"success": True, "users": users}


@router.post("/request", response_model=FriendRequestResponse, status_code=status.HTTP_201_CREATED)
async def send_request(
    data: FriendRequestCreate,
    req: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    friendship_id = await friend_service.request_friendship(
        db, user.id, data.recipient_id, getattr(req.app.state, "redis", None)
    )
    return {"success": True, "friendship_id": friendship_id}


@router.put("/accept/{friendship_id}", response_model=ActionResponse)
async def accept_request(
    friendship_id: int = Path(gt=0, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await friend_service.accept_friendship(db, friendship_id, user.id)
    return {"success": True}


@router.delete("/reject/{friendship_id}", response_model=ActionResponse)
async def reject_request(
    friendship_id: int = Path(gt=0, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await friend_service.reject_friendship(db, friendship_id, user.id)
    return {"success": True}


@router.delete("/{friendship_id}", response_model=ActionResponse)
async def remove_friend(
    friendship_id: int = Path(gt=0, le=MAX_ID),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await friend_service.remove_friendship(db, friendship_id, user.id)
    return {"success": True}
