# helpdesk/services/auth.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.errors import IntegrityGuard, Unauthenticated
from helpdesk.core.security import create_access_token, decode_token, hash_password, verify_password
from helpdesk.db.models import RoleEnum, User
from helpdesk.db.session import commit_or_raise
from helpdesk.services.permissions import Principal

log = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == normalize_email(email)))
    return res.scalar_one_or_none()


def to_principal(user: User) -> Principal:
    return Principal(
        id=user.id,
        email=user.email,
        full_name=user.full_name or "",
        role=RoleEnum(user.role),
    )


async def authenticate(db: AsyncSession, *, email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(db, email)
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


async def register_user(
    db: AsyncSession, *, email: str, password: str, full_name: str
) -> User:
    """Self-registration: role is always ``user``, whatever the client sends."""
    if await get_user_by_email(db, email):
        raise IntegrityGuard("User already exists")

    user = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        full_name=full_name.strip(),
        role=RoleEnum.user,
    )
    db.add(user)
    await commit_or_raise(db, "Registration failed")
    await db.refresh(user)
    log.info("user_registered id=%s", user.id)
    return user


def make_token_for_user(user: User) -> str:
    role_value = getattr(user.role, "value", user.role)
    return create_access_token(
        subject=str(user.id),
        role=str(role_value),
        secret=settings.jwt_secret,
        expires_minutes=settings.session_expires_min,
        algorithm=settings.jwt_alg,
    )


async def resolve_principal(db: AsyncSession, token: Optional[str]) -> Principal:
    """
    Token -> Principal, failing closed.

    The role comes from the users row, so role changes and deletions apply to
    already issued tokens.
    """
    if not token:
        raise Unauthenticated()
    try:
        payload = decode_token(token, settings.jwt_secret, settings.jwt_alg)
        user_id = int(payload["sub"])
    except (ValueError, TypeError, KeyError):
        raise Unauthenticated("Invalid or expired session")

    user = await db.get(User, user_id)
    if user is None:
        raise Unauthenticated("Invalid or expired session")
    return to_principal(user)
