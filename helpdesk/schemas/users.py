# helpdesk/schemas/users.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from helpdesk.db.models import RoleEnum


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    full_name: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    full_name: str
    role: RoleEnum
    created_at: datetime


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    password: str = Field(max_length=128)
    role: str = RoleEnum.user.value


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    role: str | None = None


class BulkUserRequest(BaseModel):
    # shape is checked by the service so malformed ids report "Invalid request data"
    action: str | None = None
    user_ids: Any = Field(default=None, validation_alias=AliasChoices("user_ids", "userIds"))
    data: dict[str, Any] | None = None


class UserEnvelope(BaseModel):
    user: UserOut


class UsersPage(BaseModel):
    users: list[UserOut]
    total: int
    page: int
    limit: int
    total_pages: int


class AgentsOut(BaseModel):
    agents: list[UserBrief]


class MessageOut(BaseModel):
    message: str
