from pydantic import Field

from soundcircle.schemas.auth import UserResponse
from soundcircle.schemas.base import CamelModel


class ProfileResponse(CamelModel):
    success: bool = True
    user: UserResponse


class UserListResponse(CamelModel):
    success: bool = True
    users: list[UserResponse]


class ChangeNickRequest(CamelModel):
    new_nick: str = Field(min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_-]+$")


class ChangeNickResponse(CamelModel):
    success: bool = True
    old_nick: str
    new_nick: str
    user_id: int


class ToggleAdminRequest(CamelModel):
    is_admin: bool


class MessageResponse(CamelModel):
    success: bool = True
    message: str
