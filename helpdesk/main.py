# helpdesk/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpdesk.api.routes import auth, comments, health, reference, tickets, users
from helpdesk.core.config import settings
from helpdesk.core.errors import HelpdeskError
from helpdesk.core.logging import RequestIdMiddleware, log_extra, setup_logging

log = logging.getLogger("helpdesk")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request data"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid value")
    return f"{field}: {msg}" if field else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HelpdeskError)
    async def helpdesk_error_handler(request: Request, exc: HelpdeskError):
        if exc.status_code >= 500:
            log.error("request_failed: %s", exc.message, extra=log_extra(request))
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(SQLAlchemyError)
    async def db_error_handler(request: Request, exc: SQLAlchemyError):
        # the cause goes to the log, never to the client
        log.exception("datastore_error", extra=log_extra(request))
        return _error(500, "Internal server error")


def create_app() -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Helpdesk",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json",
    )

    # ==== Middlewares ====
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    # ==== API under /api ====
    app.include_router(health.router,           prefix="/api",           tags=["health"])
    app.include_router(auth.router,             prefix="/api/auth",      tags=["auth"])
    app.include_router(users.router,            prefix="/api/users",     tags=["users"])
    app.include_router(tickets.router,          prefix="/api/tickets",   tags=["tickets"])
    app.include_router(comments.router,         prefix="/api/tickets",   tags=["comments"])
    app.include_router(tickets.dashboard_router, prefix="/api/dashboard", tags=["dashboard"])
    app.include_router(reference.router,        prefix="/api",           tags=["reference"])

    return app


app = create_app()
