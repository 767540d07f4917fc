from datetime import datetime
from typing import Literal

from pydantic import Field

from soundcircle.schemas.base import MAX_ID, CamelModel


class PublicUser(CamelModel):
    id: int
    nick: str
    email: str


class FriendshipItem(CamelModel):
    id: int
    requester_id: int
    addressee_id: int
    status: str
    direction: Literal["outgoing", "incoming"]
    created_at: datetime
    friend: PublicUser


class FriendListResponse(CamelModel):
    success: bool = True
    friendships: list[FriendshipItem]


class SearchResponse(CamelModel):
    success: bool = True
    users: list[PublicUser]


class FriendRequestCreate(CamelModel):
    recipient_id: int = Field(gt=0, le=MAX_ID)


class FriendRequestResponse(CamelModel):
    success: bool = True
    friendship_id: int


class ActionResponse(CamelModel):
    success: bool = True
