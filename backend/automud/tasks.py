import logging
import os

from celery import Celery

from . import models, notify

# purpose: run the outbound actions implied by close reasons off the request path
# status: active

_logger = logging.getLogger(__name__)

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("automud", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)


@celery_app.task
def send_close_reason_notification(
    request_id: str, email: str, first_name: str | None, close_reason: int
):
    subject, body = notify.close_reason_email(first_name, close_reason)
    notify.send_email(email, subject, body)
    _logger.info("Close reason %s e-mail sent for request %s", close_reason, request_id)
    return True


def enqueue_close_reason_notification(
    request_id: str, email: str, first_name: str | None, close_reason: int
):
    if celery_app.conf.task_always_eager:
        send_close_reason_notification(request_id, email, first_name, close_reason)
    else:
        send_close_reason_notification.delay(request_id, email, first_name, close_reason)


def dispatch_automatic_action(
    action: str | None, request: models.Request, close_reason: int | None
) -> bool:
    """Queue the job behind ``action``; returns whether anything was queued."""

    if action is None:
        return False
    if action == "email_customer":
        if not request.email:
            _logger.warning("Request %s has no e-mail address; %s skipped", request.id, action)
            return False
        enqueue_close_reason_notification(request.id, request.email, request.first_name, close_reason)
        return True
    _logger.warning("Unknown automatic action %s for request %s", action, request.id)
    return False
