# crm/schemas/user.py
from __future__ import annotations
from typing import Literal, List, Optional
from pydantic import BaseModel, EmailStr, Field

RoleName = Literal["admin", "manager", "member"]


class UserBase(BaseModel):
    name: str
    email: EmailStr
    status: str = "active"


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)
    roles: List[RoleName] = Field(default_factory=lambda: ["member"])


class UserUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[Literal["active", "inactive", "invited"]] = None
    avatar_url: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    roles: Optional[List[RoleName]] = None  # substitui o conjunto de papéis (se enviado)


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    status: Optional[str] = None
    avatar_url: Optional[str] = None
    roles: List[str] = []

    model_config = {"from_attributes": True}

    @classmethod
    def from_user(cls, user) -> "UserOut":
        return cls(id=user.id, name=user.name, email=user.email, status=user.status,
                   avatar_url=user.avatar_url, roles=sorted(r.name for r in user.roles or []))
