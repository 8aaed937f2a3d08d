from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class Subjects:
    BUDGET_ALERT = "budget.alert"
    INVITATION_CREATED = "invitation.created"
    INVITATION_ACCEPTED = "invitation.accepted"
    FAMILY_MEMBER_LEFT = "family.member_left"


class NotificationEmitter(Protocol):
    def emit(self, subject: str, payload: dict[str, Any]) -> None: ...


class LogEmitter:
    """Default emitter when no delivery channel is configured."""

    def emit(self, subject: str, payload: dict[str, Any]) -> None:
        logger.info("notification %s %s", subject, payload)


class WebhookEmitter:
    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.timeout = timeout

    def emit(self, subject: str, payload: dict[str, Any]) -> None:
        resp = httpx.post(self.url, json={"subject": subject, "payload": payload}, timeout=self.timeout)
        resp.raise_for_status()


_emitter: NotificationEmitter | None = None


def emitter() -> NotificationEmitter:
    global _emitter
    if _emitter is None:
        if settings.notification_webhook_url:
            _emitter = WebhookEmitter(settings.notification_webhook_url, settings.notification_timeout_seconds)
        else:
            _emitter = LogEmitter()
    return _emitter


def get_notification_emitter() -> NotificationEmitter:
    """FastAPI dependency; tests override it with a recording fake."""
    return emitter()


def publish_event(subject: str, payload: dict[str, Any], *, sink: NotificationEmitter | None = None) -> bool:
    # Fire-and-forget: delivery problems are logged, never raised to the caller.
    try:
        (sink or emitter()).emit(subject, payload)
    except Exception:
        logger.warning("notification %s could not be delivered", subject, exc_info=True)
        return False
    return True
