from datetime import datetime

from pydantic import EmailStr, Field

from soundcircle.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    nick: str = Field(min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_-]+$")
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str


class UserResponse(CamelModel):
    id: int
    nick: str
    email: str
    is_admin: bool
    created_at: datetime


class TokenResponse(CamelModel):
    success: bool = True
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenResponse):
    user: UserResponse
