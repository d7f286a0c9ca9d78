from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.db.session import get_session
from helpdesk.services.auth import resolve_principal
from helpdesk.services.permissions import Principal

# Full path: routers are mounted under /api in main.py.
# auto_error is off so the session cookie can be tried next.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

DBDep = Annotated[AsyncSession, Depends(get_session)]


def session_token(
    request: Request,
    bearer: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Optional[str]:
    """Bearer header first, then the session cookie set at login."""
    return bearer or request.cookies.get(settings.session_cookie_name)


async def get_current_principal(
    db: DBDep,
    token: Annotated[Optional[str], Depends(session_token)],
) -> Principal:
    """
    Resolve the caller from the JWT. No token, a bad token or a user that no
    longer exists all end in 401.
    """
    return await resolve_principal(db, token)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
