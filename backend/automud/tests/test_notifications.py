import json
import logging

from .conftest import create_request, TestingSessionLocal
from automud import models, notify, tasks
from automud.logging_config import JSONFormatter, configure_logging


def load_request(request_id):
    db = TestingSessionLocal()
    try:
        return db.get(models.Request, request_id)
    finally:
        db.close()


def test_close_reason_email_queued():
    request = load_request(create_request(first_name="Marco", email="marco@example.com"))
    assert tasks.dispatch_automatic_action("email_customer", request, 20) is True
    assert len(notify.EMAIL_OUTBOX) == 1
    to_email, subject, body = notify.EMAIL_OUTBOX[0]
    assert to_email == "marco@example.com"
    assert subject == "Update on your vehicle request"
    assert "Hello Marco," in body
    assert "Dealer does not collect" in body


def test_dispatch_skips_when_nothing_to_do():
    request = load_request(create_request(email=None))
    assert tasks.dispatch_automatic_action(None, request, None) is False
    assert tasks.dispatch_automatic_action("email_customer", request, 20) is False
    assert tasks.dispatch_automatic_action("call_customer", request, 20) is False
    assert notify.EMAIL_OUTBOX == []


def test_json_logging(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        record = logging.LogRecord("automud.test", logging.INFO, __file__, 1, "moved %s", ("req-1",), None)
        record.request_id = "req-1"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "moved req-1"
        assert entry["request_id"] == "req-1"
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
