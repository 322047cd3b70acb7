from contextlib import contextmanager
from datetime import timedelta, timezone

import pytest
import resend

from studiobook.config import get_settings
from studiobook.db import models
from studiobook.services import email_templates
from studiobook.services.events import BookingCreated, ClassCancelled, WaitlistSeatOpen
from studiobook.services.notification_service import (
    EmailDeliveryError,
    NotificationDispatcher,
    ResendEmailSender,
    RetryPolicy,
)

from .helpers import NOW


def booking_event(**overrides):
    values = dict(
        booking_id=7,
        student_id=3,
        student_email="maya@example.com",
        student_name="Maya",
        class_id=11,
        class_name="Reformer",
        class_starts_at=NOW + timedelta(days=1),
        instructor_name="Dana",
        instructor_email=None,
        credits_used=1,
        booked_seats=4,
        capacity=10,
        cancellation_policy="Cancel at least 24 hours before class.",
    )
    values.update(overrides)
    return BookingCreated(**values)


def test_booking_confirmation_only_goes_to_student_by_default():
    messages = email_templates.render(booking_event(), get_settings())

    assert len(messages) == 1
    message = messages[0]
    assert message.recipient == "maya@example.com"
    assert message.notification_type == models.NotificationType.booking_confirmation
    assert message.subject.startswith("Class Confirmed - Reformer on ")
    assert "Credits used: 1" in message.html


def test_booking_copies_instructor_and_admin(configure):
    configure(ADMIN_NOTIFICATION_EMAIL="owner@studio.test")

    messages = email_templates.render(booking_event(instructor_email="dana@studio.test"))

    assert [m.recipient for m in messages] == [
        "maya@example.com",
        "dana@studio.test",
        "owner@studio.test",
    ]
    assert "Booked: 4 / 10" in messages[1].html


def test_free_booking_mentions_no_credits():
    message = email_templates.render(booking_event(credits_used=0))[0]

    assert "free" in message.html


def test_student_names_are_escaped():
    message = email_templates.render(booking_event(student_name="<b>Maya</b>"))[0]

    assert "<b>Maya</b>" not in message.html
    assert "&lt;b&gt;Maya&lt;/b&gt;" in message.html


def test_class_time_is_shown_in_studio_timezone():
    day, time = email_templates.format_class_time(NOW)

    assert day == "Monday, March 04, 2030"
    assert time == "10:00 AM"


def test_render_rejects_unknown_events():
    with pytest.raises(TypeError):
        email_templates.render(object())


def test_class_cancelled_mentions_refund():
    event = ClassCancelled(
        booking_id=1,
        student_id=2,
        student_email="maya@example.com",
        student_name="Maya",
        class_id=3,
        class_name="Mat",
        class_starts_at=NOW,
        credits_refunded=2,
    )

    message = email_templates.render(event)[0]

    assert message.subject == "Class Cancelled - Mat"
    assert "2 credit(s)" in message.html


def test_dispatch_records_sent_notification(db_session, dispatcher, email_sender):
    results = dispatcher.dispatch([booking_event()], now=NOW)

    assert [r.sent for r in results] == [True]
    notification = db_session.get(models.Notification, results[0].notification_id)
    assert notification.status == models.NotificationStatus.sent
    assert notification.attempts == 1
    assert notification.sent_at.replace(tzinfo=timezone.utc) == NOW
    assert email_sender.sent[0]["to"] == "maya@example.com"


def test_failed_delivery_is_scheduled_with_backoff(db_session, dispatcher, email_sender):
    email_sender.fail_next()

    results = dispatcher.dispatch([booking_event()], now=NOW)

    assert results[0].sent is False
    assert results[0].error == "provider unavailable"
    notification = db_session.get(models.Notification, results[0].notification_id)
    assert notification.status == models.NotificationStatus.failed
    assert notification.last_error == "provider unavailable"
    assert notification.next_attempt_at.replace(tzinfo=timezone.utc) == NOW + timedelta(seconds=120)


def test_retry_waits_for_next_attempt(db_session, dispatcher, email_sender):
    email_sender.fail_next()
    dispatcher.dispatch([booking_event()], now=NOW)

    assert dispatcher.retry_failed(NOW + timedelta(seconds=60)) == []
    results = dispatcher.retry_failed(NOW + timedelta(seconds=120))

    assert [r.sent for r in results] == [True]
    notification = db_session.get(models.Notification, results[0].notification_id)
    assert notification.status == models.NotificationStatus.sent
    assert notification.attempts == 2
    assert notification.next_attempt_at is None


def test_retries_stop_after_max_attempts(db_session, dispatcher, email_sender):
    email_sender.fail_next(times=5)
    results = dispatcher.dispatch([booking_event()], now=NOW)
    later = NOW + timedelta(days=1)

    dispatcher.retry_failed(later)
    dispatcher.retry_failed(later + timedelta(days=1))

    notification = db_session.get(models.Notification, results[0].notification_id)
    assert notification.attempts == 3
    assert notification.status == models.NotificationStatus.failed
    assert notification.next_attempt_at is None
    assert dispatcher.retry_failed(later + timedelta(days=30)) == []


def test_render_failure_skips_event(dispatcher, email_sender):
    event = WaitlistSeatOpen(
        waitlist_entry_id=1,
        student_id=2,
        student_email="maya@example.com",
        student_name="Maya",
        class_id=3,
        class_name="Mat",
        class_starts_at=NOW,
        position=1,
        spots_available=2,
    )

    results = dispatcher.dispatch([object(), event], now=NOW)

    assert len(results) == 1
    assert "2 spots have" in email_sender.sent[0]["html"]


def test_unrecordable_notification_is_reported_not_raised(email_sender):
    @contextmanager
    def broken_session():
        raise RuntimeError("database is down")
        yield

    dispatcher = NotificationDispatcher(broken_session, email_sender)

    results = dispatcher.dispatch([booking_event()], now=NOW)

    assert results[0].sent is False
    assert results[0].notification_id is None
    assert email_sender.sent == []


def test_retry_policy_doubles_delay():
    policy = RetryPolicy(base_seconds=30, max_attempts=4)

    assert policy.next_attempt(1, NOW) == NOW + timedelta(seconds=60)
    assert policy.next_attempt(3, NOW) == NOW + timedelta(seconds=240)
    assert policy.should_retry(3) is True
    assert policy.should_retry(4) is False


def test_resend_sender_requires_api_key():
    sender = ResendEmailSender(api_key="", from_address="Studio <noreply@studio.test>")

    with pytest.raises(EmailDeliveryError):
        sender.send(to="maya@example.com", subject="Hi", html="<p>Hi</p>")


def test_resend_sender_posts_email(monkeypatch):
    calls = []

    def fake_send(params):
        calls.append(params)
        return {"id": "email_123"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    sender = ResendEmailSender(api_key="re_test", from_address="Studio <noreply@studio.test>")

    email_id = sender.send(to="maya@example.com", subject="Hi", html="<p>Hi</p>")

    assert email_id == "email_123"
    assert calls == [
        {
            "from": "Studio <noreply@studio.test>",
            "to": ["maya@example.com"],
            "subject": "Hi",
            "html": "<p>Hi</p>",
        }
    ]


def test_resend_sender_wraps_provider_errors(monkeypatch):
    def fake_send(params):
        raise RuntimeError("422 invalid from address")

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    sender = ResendEmailSender(api_key="re_test", from_address="bad")

    with pytest.raises(EmailDeliveryError, match="invalid from address"):
        sender.send(to="maya@example.com", subject="Hi", html="<p>Hi</p>")
