# helpdesk/core/logging.py
import logging
import logging.config
import time
import uuid
from typing import Any, Mapping

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

access_log = logging.getLogger("helpdesk.access")


def setup_logging(level: str = "INFO") -> None:
    """One logging config for the app, the worker and uvicorn."""
    log_format = "%(asctime)s %(levelname)s %(name)s %(message)s"
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": log_format},
        },
        "handlers": {
            "default": {"class": "logging.StreamHandler", "formatter": "plain"},
        },
        "loggers": {
            "": {"handlers": ["default"], "level": level},
            "helpdesk": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": level, "propagate": False},
        },
    })


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Propagates or creates X-Request-ID:
    - taken from the incoming header when present,
    - generated otherwise,
    - echoed on the response and logged with the request line.
    """

    header_name = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[self.header_name] = request_id

        access_log.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": request_id,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response


def log_extra(request: Request) -> Mapping[str, Any]:
    """
    Helper for routers:
    logger.info("ticket_created", extra=log_extra(request))
    """
    rid = getattr(request.state, "request_id", None)
    return {"request_id": rid} if rid else {}
