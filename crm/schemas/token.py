# crm/schemas/token.py
from typing import Optional
from pydantic import BaseModel

from crm.schemas.user import UserOut


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenPair):
    user: Optional[UserOut] = None


class LoginIn(BaseModel):
    username: str
    password: str


class RefreshIn(BaseModel):
    token: str
