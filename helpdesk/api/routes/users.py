# helpdesk/api/routes/users.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, status

from helpdesk.api.deps import CurrentPrincipal, DBDep
from helpdesk.schemas.users import (
    BulkUserRequest,
    MessageOut,
    UserCreate,
    UserEnvelope,
    UserOut,
    UsersPage,
    UserUpdate,
)
from helpdesk.services import users as users_service

router = APIRouter()


@router.get("", response_model=UsersPage)
async def list_users(
    db: DBDep,
    current: CurrentPrincipal,
    search: Optional[str] = Query(default=None),
    role: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    result = await users_service.list_users(
        db, current, search=search, role=role, page=page, limit=limit
    )
    return UsersPage(
        users=[UserOut.model_validate(u) for u in result["users"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    )


@router.post("", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, db: DBDep, current: CurrentPrincipal):
    user = await users_service.create_user(
        db,
        current,
        email=payload.email,
        full_name=payload.full_name,
        password=payload.password,
        role=payload.role,
    )
    return UserEnvelope(user=UserOut.model_validate(user))


# declared before /{user_id} so "bulk" is never parsed as an id
@router.post("/bulk", response_model=MessageOut)
async def bulk_users(payload: BulkUserRequest, db: DBDep, current: CurrentPrincipal):
    message = await users_service.bulk_operation(
        db,
        current,
        action=payload.action,
        user_ids=payload.user_ids,
        data=payload.data,
    )
    return MessageOut(message=message)


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(user_id: int, db: DBDep, current: CurrentPrincipal):
    user = await users_service.get_user(db, current, user_id)
    return UserEnvelope(user=UserOut.model_validate(user))


@router.put("/{user_id}", response_model=UserEnvelope)
async def update_user(user_id: int, payload: UserUpdate, db: DBDep, current: CurrentPrincipal):
    user = await users_service.update_user(
        db,
        current,
        user_id,
        email=payload.email,
        full_name=payload.full_name,
        role=payload.role,
    )
    return UserEnvelope(user=UserOut.model_validate(user))


@router.delete("/{user_id}", response_model=MessageOut)
async def delete_user(user_id: int, db: DBDep, current: CurrentPrincipal):
    await users_service.delete_user(db, current, user_id)
    return MessageOut(message="User deleted successfully")
