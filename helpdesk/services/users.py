"""
User management: profile reads/edits, admin CRUD and bulk operations.

Deletes (single or bulk) are refused while the target still owns or is
assigned to a ticket. Bulk operations are all-or-nothing: every check runs
before the single UPDATE/DELETE statement is issued.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Collection, Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.errors import IntegrityGuard, NotFound, ValidationFailed
from helpdesk.core.security import hash_password
from helpdesk.db.models import RoleEnum, Ticket, User, utcnow
from helpdesk.db.session import commit_or_raise
from helpdesk.services.auth import get_user_by_email, normalize_email
from helpdesk.services.permissions import (
    Action,
    Principal,
    RoleChange,
    UserBatch,
    UserRef,
    require,
)

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def parse_role(value: Any) -> RoleEnum:
    try:
        return RoleEnum(value)
    except ValueError:
        raise ValidationFailed("Invalid role")


async def _fetch_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def count_associated_tickets(db: AsyncSession, user_ids: Collection[int]) -> int:
    """Tickets owned by, or assigned to, any of ``user_ids``."""
    ids = list(user_ids)
    if not ids:
        return 0
    stmt = select(func.count(Ticket.id)).where(
        or_(Ticket.user_id.in_(ids), Ticket.assigned_agent_id.in_(ids))
    )
    return int((await db.execute(stmt)).scalar_one())


async def get_user(db: AsyncSession, principal: Principal, user_id: int) -> User:
    require(principal, Action.VIEW_USER, UserRef(user_id))
    return await _fetch_user(db, user_id)


async def list_users(
    db: AsyncSession,
    principal: Principal,
    *,
    search: Optional[str] = None,
    role: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    require(principal, Action.LIST_USERS)

    stmt = select(User)
    if search:
        like = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(func.lower(User.email).like(like), func.lower(User.full_name).like(like)))
    if role and role != "all":
        stmt = stmt.where(User.role == parse_role(role))

    total = int((await db.execute(stmt.with_only_columns(func.count(User.id)))).scalar_one())
    rows: Sequence[User] = (
        await db.execute(
            stmt.order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
    ).scalars().all()

    return {
        "users": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


async def list_agents(db: AsyncSession, principal: Principal) -> Sequence[User]:
    require(principal, Action.LIST_AGENTS)
    stmt = (
        select(User)
        .where(User.role.in_([RoleEnum.agent, RoleEnum.admin]))
        .order_by(User.full_name.asc())
    )
    return (await db.execute(stmt)).scalars().all()


async def create_user(
    db: AsyncSession,
    principal: Principal,
    *,
    email: str,
    full_name: str,
    password: str,
    role: Any = RoleEnum.user,
) -> User:
    require(principal, Action.CREATE_USER)

    new_role = parse_role(role)
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if await get_user_by_email(db, email):
        raise IntegrityGuard("User already exists")

    user = User(
        email=normalize_email(email),
        full_name=full_name.strip(),
        password_hash=hash_password(password),
        role=new_role,
    )
    db.add(user)
    await commit_or_raise(db, "Failed to create user")
    await db.refresh(user)
    log.info("user_created id=%s role=%s by=%s", user.id, new_role.value, principal.id)
    return user


async def update_user(
    db: AsyncSession,
    principal: Principal,
    user_id: int,
    *,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    role: Any = None,
) -> User:
    # permission on the target first; a missing user is only reported to
    # callers who may see it
    require(principal, Action.EDIT_USER, UserRef(user_id))
    new_role = None
    if role is not None:
        require(principal, Action.CHANGE_ROLE, RoleChange(UserRef(user_id), role))
        new_role = parse_role(role)

    user = await _fetch_user(db, user_id)

    if email:
        new_email = normalize_email(email)
        if new_email != user.email:
            taken = await get_user_by_email(db, new_email)
            if taken is not None and taken.id != user.id:
                raise IntegrityGuard("Email already taken")
            user.email = new_email
    if full_name:
        user.full_name = full_name.strip()
    if new_role is not None:
        user.role = new_role

    user.updated_at = utcnow()
    await commit_or_raise(db, "Failed to update user")
    await db.refresh(user)
    log.info("user_updated id=%s by=%s", user.id, principal.id)
    return user


async def delete_user(db: AsyncSession, principal: Principal, user_id: int) -> None:
    require(principal, Action.DELETE_USER, UserRef(user_id))
    user = await _fetch_user(db, user_id)

    if await count_associated_tickets(db, [user.id]):
        raise IntegrityGuard("Cannot delete user with associated tickets. Please reassign tickets first.")

    await db.delete(user)
    await commit_or_raise(db, "Failed to delete user")
    log.info("user_deleted id=%s by=%s", user_id, principal.id)


def _parse_targets(user_ids: Any) -> list[int]:
    if not isinstance(user_ids, (list, tuple)) or not user_ids:
        raise ValidationFailed("Invalid request data")
    targets: list[int] = []
    for raw in user_ids:
        if isinstance(raw, bool):
            raise ValidationFailed("Invalid request data")
        try:
            targets.append(int(raw))
        except (TypeError, ValueError):
            raise ValidationFailed("Invalid request data")
    # keep order, drop duplicates
    return list(dict.fromkeys(targets))


async def bulk_delete(db: AsyncSession, principal: Principal, targets: list[int]) -> int:
    require(principal, Action.BULK_USERS, UserBatch(targets))

    if await count_associated_tickets(db, targets):
        raise IntegrityGuard("Cannot delete users with associated tickets. Please reassign tickets first.")

    await db.execute(delete(User).where(User.id.in_(targets)))
    await commit_or_raise(db, "Failed to delete users")
    log.info("bulk_delete count=%s by=%s", len(targets), principal.id)
    return len(targets)


async def bulk_update_role(db: AsyncSession, principal: Principal, targets: list[int], role: Any) -> int:
    require(principal, Action.BULK_USERS, UserBatch(targets))
    new_role = parse_role(role)

    await db.execute(
        update(User)
        .where(User.id.in_(targets))
        .values(role=new_role, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await commit_or_raise(db, "Failed to update user roles")
    log.info("bulk_update_role count=%s role=%s by=%s", len(targets), new_role.value, principal.id)
    return len(targets)


async def bulk_operation(
    db: AsyncSession,
    principal: Principal,
    *,
    action: Any,
    user_ids: Any,
    data: Optional[dict] = None,
) -> str:
    """
    Single entry point for POST /users/bulk; returns the outcome message.

    Order of checks: admin, request shape, caller in the target set, action.
    Nothing is written unless all of them pass.
    """
    require(principal, Action.BULK_USERS)
    if not action:
        raise ValidationFailed("Invalid request data")
    targets = _parse_targets(user_ids)
    require(principal, Action.BULK_USERS, UserBatch(targets))

    if action == "delete":
        count = await bulk_delete(db, principal, targets)
        return f"Successfully deleted {count} users"
    if action == "updateRole":
        count = await bulk_update_role(db, principal, targets, (data or {}).get("role"))
        return f"Successfully updated role for {count} users"
    raise ValidationFailed("Invalid action")
