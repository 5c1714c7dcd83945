from typing import Optional

from pydantic import EmailStr, Field

from sweetshop.schemas.base import CamelModel


class RegisterIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


class LoginIn(CamelModel):
    email: EmailStr
    password: str


class UserOut(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str


class TokenOut(CamelModel):
    user: UserOut
    access_token: str


class AccessTokenOut(CamelModel):
    access_token: str


class RevokeIn(CamelModel):
    user_id: int
