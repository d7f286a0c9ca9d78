import hashlib
import hmac
import json
from types import SimpleNamespace

import pytest

from helpdesk.core.config import settings
from helpdesk.services import notifications
from helpdesk.workers import rq_worker


class FakeQueue:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def enqueue(self, func, *args, **kwargs):
        if self.fail:
            raise ConnectionError("redis is down")
        self.calls.append((func, args, kwargs))
        return SimpleNamespace(id="job-1")


def test_enqueue_is_noop_when_disabled(monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", False)
    queue = FakeQueue()
    monkeypatch.setattr(notifications, "_get_queue", lambda: queue)

    assert notifications.enqueue("ticket_created", {"ticket_id": 1}) is None
    assert queue.calls == []


def test_enqueue_targets_worker_handler(monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", True)
    queue = FakeQueue()
    monkeypatch.setattr(notifications, "_get_queue", lambda: queue)

    job_id = notifications.enqueue("status_changed", {"ticket_id": 1, "to": "closed"})

    assert job_id == "job-1"
    func, args, kwargs = queue.calls[0]
    assert func == "helpdesk.workers.rq_worker.handle_event"
    assert args == ("status_changed", {"ticket_id": 1, "to": "closed"})
    assert kwargs["job_timeout"] == 60


def test_enqueue_failure_does_not_raise(monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", True)
    monkeypatch.setattr(notifications, "_get_queue", lambda: FakeQueue(fail=True))

    assert notifications.enqueue("ticket_created", {"ticket_id": 1}) is None


@pytest.fixture
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(rq_worker, "send_mail_mock", lambda to, subject, body: sent.append((to, subject)))
    monkeypatch.setattr(settings, "webhook_url", None)
    return sent


def test_internal_comment_does_not_mail_owner(outbox):
    rq_worker.handle_event("comment_created", {
        "ticket_id": 5, "is_internal": True, "owner_email": "o@acme.io", "owner_id": 1, "author_id": 2,
    })
    assert outbox == []

    rq_worker.handle_event("comment_created", {
        "ticket_id": 5, "is_internal": False, "owner_email": "o@acme.io", "owner_id": 1, "author_id": 2,
    })
    assert outbox == [("o@acme.io", "New reply on ticket #5")]


def test_owner_is_not_mailed_about_own_comment(outbox):
    rq_worker.handle_event("comment_created", {
        "ticket_id": 5, "is_internal": False, "owner_email": "o@acme.io", "owner_id": 1, "author_id": 1,
    })
    assert outbox == []


def test_unknown_event_is_ignored(outbox):
    rq_worker.handle_event("ticket_exploded", {"ticket_id": 1})
    assert outbox == []


def test_webhook_is_signed(monkeypatch, outbox):
    posted = {}

    def fake_post(url, data=None, headers=None, timeout=None):
        posted.update(url=url, data=data, headers=headers)
        return SimpleNamespace(status_code=204)

    monkeypatch.setattr(settings, "webhook_url", "https://hooks.acme.io/helpdesk")
    monkeypatch.setattr(settings, "webhook_secret", "shh")
    monkeypatch.setattr(rq_worker.requests, "post", fake_post)

    payload = {"ticket_id": 9, "owner_email": "o@acme.io", "subject": "Hi"}
    rq_worker.handle_event("ticket_created", payload)

    expected = hmac.new(
        b"shh",
        json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    assert posted["url"] == "https://hooks.acme.io/helpdesk"
    assert posted["headers"]["X-Helpdesk-Event"] == "ticket_created"
    assert posted["headers"]["X-Helpdesk-Signature"] == f"sha256={expected}"
    assert json.loads(posted["data"]) == payload
    assert outbox == [("o@acme.io", "Ticket #9 created")]
