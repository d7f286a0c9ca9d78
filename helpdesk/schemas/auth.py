# helpdesk/schemas/auth.py
from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from helpdesk.schemas.users import UserOut


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class RegisterIn(BaseModel):
    # anything else the client sends (a role, say) is dropped
    model_config = ConfigDict(extra="ignore")

    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(
        min_length=1, max_length=255, validation_alias=AliasChoices("full_name", "fullName")
    )


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class MeOut(BaseModel):
    user: UserOut
