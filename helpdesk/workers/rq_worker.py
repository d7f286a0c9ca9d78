# helpdesk/workers/rq_worker.py
import hashlib
import hmac
import json
import logging
import os
from typing import Any, Callable, Mapping

import redis
import requests
from rq import Queue, Worker

from helpdesk.core.config import settings
from helpdesk.core.logging import setup_logging

logger = logging.getLogger("helpdesk.worker")


def _sign(payload: Mapping[str, Any]) -> str | None:
    if not settings.webhook_secret:
        return None
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return hmac.new(settings.webhook_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _post(event_type: str, payload: Mapping[str, Any]) -> None:
    url = settings.webhook_url
    if not url:
        return
    headers = {"Content-Type": "application/json", "X-Helpdesk-Event": event_type}
    sig = _sign(payload)
    if sig:
        headers["X-Helpdesk-Signature"] = f"sha256={sig}"
    # sent exactly as signed
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    r = requests.post(url, data=body, headers=headers, timeout=10)
    logger.info("webhook_sent", extra={"event_type": event_type, "status": r.status_code})


def send_mail_mock(to: str, subject: str, body: str) -> None:
    logger.info("SEND_MAIL", extra={"to": to, "subject": subject, "body_len": len(body)})


def on_ticket_created(payload: Mapping[str, Any]) -> None:
    ticket_id = payload.get("ticket_id")
    owner = payload.get("owner_email")
    logger.info("ticket_created", extra={"ticket_id": ticket_id})
    if owner:
        send_mail_mock(owner, f"Ticket #{ticket_id} created", "Your request was registered.")


def on_status_changed(payload: Mapping[str, Any]) -> None:
    ticket_id = payload.get("ticket_id")
    new = payload.get("to")
    logger.info("status_changed", extra={"ticket_id": ticket_id, "from": payload.get("from"), "to": new})
    owner = payload.get("owner_email")
    if owner:
        send_mail_mock(owner, f"Ticket #{ticket_id} is now {new}", f"Your ticket status changed to {new}.")


def on_ticket_assigned(payload: Mapping[str, Any]) -> None:
    ticket_id = payload.get("ticket_id")
    agent = payload.get("agent_email")
    logger.info("ticket_assigned", extra={"ticket_id": ticket_id, "agent_id": payload.get("agent_id")})
    if agent:
        send_mail_mock(agent, f"Ticket #{ticket_id} assigned to you", "A ticket was assigned to you.")


def on_comment_created(payload: Mapping[str, Any]) -> None:
    ticket_id = payload.get("ticket_id")
    logger.info("comment_created", extra={"ticket_id": ticket_id, "comment_id": payload.get("comment_id")})
    # internal notes never reach the ticket owner
    if payload.get("is_internal"):
        return
    owner = payload.get("owner_email")
    if owner and payload.get("author_id") != payload.get("owner_id"):
        send_mail_mock(owner, f"New reply on ticket #{ticket_id}", "Your ticket has a new comment.")


EVENT_HANDLERS: dict[str, Callable[[Mapping[str, Any]], None]] = {
    "ticket_created": on_ticket_created,
    "status_changed": on_status_changed,
    "ticket_assigned": on_ticket_assigned,
    "comment_created": on_comment_created,
}


def handle_event(event_type: str, payload: Mapping[str, Any] | None = None) -> None:
    handler = EVENT_HANDLERS.get(event_type)
    if not handler:
        logger.warning("unknown_event", extra={"event_type": event_type})
        return
    payload = payload or {}
    handler(payload)
    _post(event_type, payload)


def main() -> None:
    setup_logging(settings.log_level)
    logger.info("worker_starting", extra={"queue": settings.notifications_queue})
    conn = redis.from_url(settings.redis_url)
    queue = Queue(settings.notifications_queue, connection=conn)
    worker = Worker([queue], connection=conn, name=os.getenv("WORKER_NAME", "notifications-worker"))
    worker.work(logging_level=logging.INFO)


if __name__ == "__main__":
    main()
