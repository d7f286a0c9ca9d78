# helpdesk/api/routes/auth.py
from __future__ import annotations

from fastapi import APIRouter, Response, status

from helpdesk.api.deps import CurrentPrincipal, DBDep
from helpdesk.core.config import settings
from helpdesk.core.errors import PermissionDenied, Unauthenticated
from helpdesk.schemas.auth import LoginIn, MeOut, RegisterIn, TokenOut
from helpdesk.schemas.users import MessageOut, UserOut
from helpdesk.services import users as users_service
from helpdesk.services.auth import authenticate, make_token_for_user, register_user

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_expires_min * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, response: Response, db: DBDep):
    if not settings.allow_self_signup:
        raise PermissionDenied("Self-registration is disabled")
    user = await register_user(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
    )
    token = make_token_for_user(user)
    _set_session_cookie(response, token)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, response: Response, db: DBDep):
    # one message for unknown email and wrong password
    user = await authenticate(db, email=payload.email, password=payload.password)
    if user is None:
        raise Unauthenticated("Invalid credentials")
    token = make_token_for_user(user)
    _set_session_cookie(response, token)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.post("/logout", response_model=MessageOut)
async def logout(response: Response):
    response.delete_cookie(settings.session_cookie_name, path="/")
    return MessageOut(message="Logged out")


@router.get("/me", response_model=MeOut)
async def me(current: CurrentPrincipal, db: DBDep):
    user = await users_service.get_user(db, current, current.id)
    return MeOut(user=UserOut.model_validate(user))
