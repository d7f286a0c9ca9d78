# helpdesk/services/notifications.py
import logging
from typing import Any, Mapping

import redis
from rq import Queue, Retry

from helpdesk.core.config import settings

log = logging.getLogger(__name__)

HANDLER = "helpdesk.workers.rq_worker.handle_event"

_queue: Queue | None = None


def _get_queue() -> Queue:
    global _queue
    if _queue is None:
        _queue = Queue(settings.notifications_queue, connection=redis.from_url(settings.redis_url))
    return _queue


def enqueue(event_type: str, payload: Mapping[str, Any]) -> str | None:
    """
    Put an event on the notifications queue for the worker's handle_event.
    Returns the job id, or None when notifications are off or the queue is
    unreachable. A failed enqueue never fails the HTTP request that caused it.
    """
    if not settings.notifications_enabled:
        return None
    try:
        job = _get_queue().enqueue(
            HANDLER,
            event_type,
            dict(payload),
            job_timeout=60,
            retry=Retry(max=3, interval=[5, 15, 30]),
        )
        return getattr(job, "id", None)
    except Exception as e:
        log.exception("Failed to enqueue event '%s': %s", event_type, e)
        return None
