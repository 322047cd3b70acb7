from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, ContextManager, Iterable, Protocol

import resend
from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..core.clock import utc_now
from ..db import models
from ..db.session import SessionLocal
from . import email_templates
from .email_templates import EmailMessage
from .events import (
    BookingCancelled,
    BookingCreated,
    ClassCancelled,
    ClassReminder,
    WaitlistSeatOpen,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]


class EmailDeliveryError(Exception):
    pass


class EmailSender(Protocol):
    def send(self, *, to: str, subject: str, html: str) -> str | None:
        """Deliver one email, raising :class:`EmailDeliveryError` on failure."""


class ResendEmailSender:
    def __init__(self, api_key: str, from_address: str) -> None:
        self.api_key = api_key
        self.from_address = from_address

    def send(self, *, to: str, subject: str, html: str) -> str | None:
        if not self.api_key:
            logger.warning(
                "RESEND_API_KEY is not configured; email not sent",
                extra={"recipient": to},
            )
            raise EmailDeliveryError("Email service not configured")
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(
                {
                    "from": self.from_address,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                }
            )
        except Exception as exc:
            raise EmailDeliveryError(f"Failed to send email: {exc}") from exc
        return response.get("id") if isinstance(response, dict) else None


class RetryPolicy:
    def __init__(self, base_seconds: int = 60, max_attempts: int = 4) -> None:
        self.base_seconds = base_seconds
        self.max_attempts = max_attempts

    def next_attempt(self, attempts: int, now: datetime) -> datetime:
        delay = self.base_seconds * (2 ** attempts)
        return now + timedelta(seconds=delay)

    def should_retry(self, attempts: int) -> bool:
        return attempts < self.max_attempts


@dataclass(slots=True)
class DeliveryResult:
    notification_id: int | None
    recipient: str
    notification_type: models.NotificationType
    sent: bool
    error: str | None = None


class NotificationDispatcher:
    """Sends emails for committed events and keeps a delivery log.

    Failures are recorded on the ``Notification`` row and retried later by the
    scheduler; nothing raised here reaches the caller.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        sender: EmailSender,
        retry: RetryPolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.sender = sender
        self.retry = retry or RetryPolicy()
        self.settings = settings

    def dispatch(self, events: Iterable[object], now: datetime | None = None) -> list[DeliveryResult]:
        results: list[DeliveryResult] = []
        for event in events:
            try:
                messages = email_templates.render(event, self.settings)
            except Exception:
                logger.exception(
                    "Failed to render notification", extra={"event": type(event).__name__}
                )
                continue
            for message in messages:
                results.append(self._deliver(message, now or utc_now()))
        return results

    def retry_failed(self, now: datetime | None = None) -> list[DeliveryResult]:
        now = now or utc_now()
        results: list[DeliveryResult] = []
        with self.session_factory() as db:
            due = (
                db.execute(
                    select(models.Notification)
                    .where(
                        models.Notification.status == models.NotificationStatus.failed,
                        models.Notification.next_attempt_at.is_not(None),
                        models.Notification.next_attempt_at <= now,
                        models.Notification.attempts < self.retry.max_attempts,
                    )
                    .order_by(models.Notification.id)
                )
                .scalars()
                .all()
            )
            for notification in due:
                results.append(self._attempt(db, notification, now))
        if results:
            logger.info(
                "Retried failed notifications",
                extra={"count": len(results), "sent": sum(r.sent for r in results)},
            )
        return results

    def _deliver(self, message: EmailMessage, now: datetime) -> DeliveryResult:
        try:
            with self.session_factory() as db:
                notification = models.Notification(
                    user_id=message.user_id,
                    booking_id=message.booking_id,
                    recipient=message.recipient,
                    notification_type=message.notification_type,
                    subject=message.subject,
                    message=message.html,
                    status=models.NotificationStatus.pending,
                    attempts=0,
                )
                db.add(notification)
                db.commit()
                return self._attempt(db, notification, now)
        except Exception as exc:
            logger.exception(
                "Failed to record notification",
                extra={"recipient": message.recipient, "type": message.notification_type.value},
            )
            return DeliveryResult(
                notification_id=None,
                recipient=message.recipient,
                notification_type=message.notification_type,
                sent=False,
                error=str(exc),
            )

    def _attempt(self, db: Session, notification: models.Notification, now: datetime) -> DeliveryResult:
        notification.attempts = (notification.attempts or 0) + 1
        error: str | None = None
        try:
            self.sender.send(
                to=notification.recipient,
                subject=notification.subject,
                html=notification.message,
            )
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            notification.status = models.NotificationStatus.failed
            notification.last_error = error
            notification.next_attempt_at = (
                self.retry.next_attempt(notification.attempts, now)
                if self.retry.should_retry(notification.attempts)
                else None
            )
            logger.warning(
                "Notification delivery failed",
                extra={
                    "notification_id": notification.id,
                    "recipient": notification.recipient,
                    "attempts": notification.attempts,
                    "error": error,
                },
            )
        else:
            notification.status = models.NotificationStatus.sent
            notification.sent_at = now
            notification.last_error = None
            notification.next_attempt_at = None
        db.commit()
        return DeliveryResult(
            notification_id=notification.id,
            recipient=notification.recipient,
            notification_type=notification.notification_type,
            sent=error is None,
            error=error,
        )


class BackgroundDispatcher:
    """Hands committed events to FastAPI background tasks.

    Delivery runs after the response is sent, so provider latency never
    holds up the request that produced the events.
    """

    def __init__(self, dispatcher: NotificationDispatcher, background_tasks: BackgroundTasks) -> None:
        self.dispatcher = dispatcher
        self.background_tasks = background_tasks

    def dispatch(self, events: Iterable[object], now: datetime | None = None) -> None:
        events = list(events)
        if not events:
            return
        self.background_tasks.add_task(self.dispatcher.dispatch, events, now)
        logger.debug("Queued %d events for delivery", len(events))


def build_dispatcher(settings: Settings | None = None) -> NotificationDispatcher:
    settings = settings or get_settings()
    return NotificationDispatcher(
        session_factory=SessionLocal,
        sender=ResendEmailSender(settings.resend_api_key, settings.email_from),
        retry=RetryPolicy(
            base_seconds=settings.notification_retry_base_seconds,
            max_attempts=settings.notification_max_attempts,
        ),
        settings=settings,
    )


__all__ = [
    "BackgroundDispatcher",
    "BookingCancelled",
    "BookingCreated",
    "ClassCancelled",
    "ClassReminder",
    "DeliveryResult",
    "EmailDeliveryError",
    "EmailSender",
    "NotificationDispatcher",
    "ResendEmailSender",
    "RetryPolicy",
    "WaitlistSeatOpen",
    "build_dispatcher",
]
