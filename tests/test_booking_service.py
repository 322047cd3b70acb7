from datetime import timedelta

import pytest
from fastapi import BackgroundTasks

from studiobook.core.exceptions import (
    AlreadyCancelled,
    BookingNotFound,
    ClassFull,
    ClassNotAvailable,
    ClassNotFound,
    DuplicateBooking,
    InsufficientCredits,
)
from studiobook.db import models
from studiobook.services import booking_service, capacity, credit_ledger, waitlist_service
from studiobook.services.cancellation_policy import update_policy
from studiobook.services.notification_service import BackgroundDispatcher

from .helpers import NOW, create_class, create_user, give_credits


def test_last_seat_goes_to_first_student(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=2), capacity=1)
    first = create_user(db_session, "first@example.com")
    second = create_user(db_session, "second@example.com")
    give_credits(db_session, first, 1)
    give_credits(db_session, second, 1)

    booking = booking_service.create_booking(db_session, first, class_session.id, now=NOW)

    assert booking.status == models.BookingStatus.confirmed
    assert booking.credits_used == 1
    assert credit_ledger.available_credits(db_session, first.id, now=NOW) == 0
    with pytest.raises(ClassFull) as exc_info:
        booking_service.create_booking(db_session, second, class_session.id, now=NOW)
    assert exc_info.value.code == "CLASS_FULL"
    assert credit_ledger.available_credits(db_session, second.id, now=NOW) == 1
    assert capacity.confirmed_count(db_session, class_session.id) == 1


def test_on_time_cancellation_refunds_credit(db_session):
    update_policy(db_session, cancellation_window_hours=24)
    class_session = create_class(db_session, NOW + timedelta(hours=30))
    student = create_user(db_session)
    give_credits(db_session, student, 1, expiration_days=30)
    booking = booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    result = booking_service.cancel_booking(db_session, student, booking.id, now=NOW)

    assert result.booking.status == models.BookingStatus.cancelled
    assert result.cancellation_type == models.CancellationType.on_time
    assert result.credits_refunded == 1
    assert result.penalty is None
    assert result.hours_until_class == pytest.approx(30)
    assert result.message == "Booking cancelled successfully. No penalty applied."
    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 1


def test_late_cancellation_keeps_credit(db_session):
    class_session = create_class(db_session, NOW + timedelta(hours=10))
    student = create_user(db_session)
    give_credits(db_session, student, 1)
    booking = booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    result = booking_service.cancel_booking(db_session, student, booking.id, now=NOW)

    assert result.booking.status == models.BookingStatus.late_cancel
    assert result.cancellation_type == models.CancellationType.late
    assert result.credits_refunded == 0
    assert result.penalty == "lose_credit"
    assert result.message == "Late cancellation recorded. Penalty: lose_credit"
    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 0


def test_cancelling_after_start_is_a_no_show(db_session):
    class_session = create_class(db_session, NOW + timedelta(hours=2))
    student = create_user(db_session)
    give_credits(db_session, student, 1)
    booking = booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    later = NOW + timedelta(hours=3)
    result = booking_service.cancel_booking(db_session, student, booking.id, now=later)

    assert result.booking.status == models.BookingStatus.no_show
    assert result.cancellation_type == models.CancellationType.no_show
    assert result.hours_until_class == 0
    assert result.credits_refunded == 0


def test_second_booking_for_same_class_is_rejected(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    give_credits(db_session, student, 2)
    booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    with pytest.raises(DuplicateBooking):
        booking_service.create_booking(db_session, student, class_session.id, now=NOW)
    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 1


def test_rebooking_after_cancellation_creates_new_row(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=3))
    student = create_user(db_session)
    give_credits(db_session, student, 1, expiration_days=30)
    first = booking_service.create_booking(db_session, student, class_session.id, now=NOW)
    booking_service.cancel_booking(db_session, student, first.id, now=NOW)

    second = booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    assert second.id != first.id
    assert first.status == models.BookingStatus.cancelled
    assert second.status == models.BookingStatus.confirmed


def test_cancelling_twice_fails_without_side_effects(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    give_credits(db_session, student, 1, expiration_days=30)
    booking = booking_service.create_booking(db_session, student, class_session.id, now=NOW)
    booking_service.cancel_booking(db_session, student, booking.id, now=NOW)

    with pytest.raises(AlreadyCancelled) as exc_info:
        booking_service.cancel_booking(db_session, student, booking.id, now=NOW)

    assert exc_info.value.extra["currentStatus"] == "cancelled"
    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 1


def test_students_cannot_cancel_other_bookings(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    owner = create_user(db_session, "owner@example.com")
    other = create_user(db_session, "other@example.com")
    admin = create_user(db_session, "admin@example.com", role=models.UserRole.admin)
    give_credits(db_session, owner, 1)
    booking = booking_service.create_booking(db_session, owner, class_session.id, now=NOW)

    with pytest.raises(BookingNotFound):
        booking_service.cancel_booking(db_session, other, booking.id, now=NOW)
    result = booking_service.cancel_booking(db_session, admin, booking.id, now=NOW)
    assert result.booking.status == models.BookingStatus.cancelled


def test_booking_requires_credits(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)

    with pytest.raises(InsufficientCredits):
        booking_service.create_booking(db_session, student, class_session.id, now=NOW)
    assert capacity.confirmed_count(db_session, class_session.id) == 0


def test_multi_credit_booking(db_session):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    give_credits(db_session, student, 3, expiration_days=30)

    booking = booking_service.create_booking(db_session, student, class_session.id, 2, now=NOW)
    assert booking.credits_used == 2
    booking_service.cancel_booking(db_session, student, booking.id, now=NOW)

    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 3


def test_free_day_booking_costs_nothing(db_session, configure):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    configure(FREE_CLASS_DATES=class_session.date.isoformat())
    student = create_user(db_session)

    booking = booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    assert booking.credits_used == 0
    result = booking_service.cancel_booking(db_session, student, booking.id, now=NOW)
    assert result.credits_refunded == 0


def test_unknown_class_is_not_found(db_session):
    student = create_user(db_session)

    with pytest.raises(ClassNotFound):
        booking_service.create_booking(db_session, student, 999, now=NOW)


@pytest.mark.parametrize(
    ("offset", "status"),
    [
        (timedelta(days=1), models.ClassStatus.cancelled),
        (timedelta(hours=-1), models.ClassStatus.scheduled),
    ],
)
def test_unavailable_classes_cannot_be_booked(db_session, offset, status):
    class_session = create_class(db_session, NOW + offset, status=status)
    student = create_user(db_session)
    give_credits(db_session, student, 1)

    with pytest.raises(ClassNotAvailable):
        booking_service.create_booking(db_session, student, class_session.id, now=NOW)


def test_booking_and_cancellation_send_emails(db_session, dispatcher, email_sender, configure):
    configure(ADMIN_NOTIFICATION_EMAIL="owner@studio.test")
    class_session = create_class(
        db_session, NOW + timedelta(days=2), instructor_email="dana@studio.test"
    )
    student = create_user(db_session, "student@example.com")
    give_credits(db_session, student, 1, expiration_days=30)

    booking = booking_service.create_booking(
        db_session, student, class_session.id, now=NOW, dispatcher=dispatcher
    )
    recipients = [email["to"] for email in email_sender.sent]
    assert recipients == ["student@example.com", "dana@studio.test", "owner@studio.test"]

    booking_service.cancel_booking(
        db_session, student, booking.id, now=NOW, dispatcher=dispatcher
    )
    assert email_sender.sent[3]["to"] == "student@example.com"
    assert email_sender.sent[3]["subject"].startswith("Booking Cancelled")
    logged = db_session.query(models.Notification).filter_by(booking_id=booking.id).all()
    assert {item.status for item in logged} == {models.NotificationStatus.sent}


def test_failed_email_does_not_fail_booking(db_session, dispatcher, email_sender):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    give_credits(db_session, student, 1)
    email_sender.fail_next()

    booking = booking_service.create_booking(
        db_session, student, class_session.id, now=NOW, dispatcher=dispatcher
    )

    assert booking.id is not None
    notification = db_session.query(models.Notification).one()
    assert notification.status == models.NotificationStatus.failed
    assert notification.attempts == 1


def test_on_time_cancellation_notifies_waitlist(db_session, dispatcher, email_sender):
    class_session = create_class(db_session, NOW + timedelta(days=2), capacity=1)
    holder = create_user(db_session, "holder@example.com")
    waiting = create_user(db_session, "waiting@example.com")
    give_credits(db_session, holder, 1, expiration_days=30)
    booking = booking_service.create_booking(db_session, holder, class_session.id, now=NOW)
    entry = waitlist_service.join(db_session, waiting, class_session.id, now=NOW)
    assert entry.position == 1

    result = booking_service.cancel_booking(
        db_session, holder, booking.id, now=NOW, dispatcher=dispatcher
    )

    assert result.waitlist_notified == 1
    db_session.refresh(entry)
    assert entry.notified is True
    assert (
        db_session.query(models.Booking).filter_by(user_id=waiting.id).count() == 0
    )
    assert any(
        email["to"] == "waiting@example.com" and email["subject"].startswith("Spot Available")
        for email in email_sender.sent
    )


def test_unique_index_backs_up_duplicate_check(db_session, monkeypatch):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    give_credits(db_session, student, 2)
    booking_service.create_booking(db_session, student, class_session.id, now=NOW)
    monkeypatch.setattr(booking_service, "_confirmed_booking_id", lambda *args: None)

    with pytest.raises(DuplicateBooking):
        booking_service.create_booking(db_session, student, class_session.id, now=NOW)

    assert credit_ledger.available_credits(db_session, student.id, now=NOW) == 1
    assert (
        db_session.query(models.Booking)
        .filter_by(user_id=student.id, status=models.BookingStatus.confirmed)
        .count()
        == 1
    )


def test_booking_emails_are_sent_after_the_request(db_session, dispatcher, email_sender):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    give_credits(db_session, student, 1)
    background_tasks = BackgroundTasks()

    booking = booking_service.create_booking(
        db_session,
        student,
        class_session.id,
        now=NOW,
        dispatcher=BackgroundDispatcher(dispatcher, background_tasks),
    )

    assert booking.status == models.BookingStatus.confirmed
    assert email_sender.sent == []
    assert db_session.query(models.Notification).count() == 0
    assert len(background_tasks.tasks) == 1

    for task in background_tasks.tasks:
        task.func(*task.args, **task.kwargs)

    assert [email["to"] for email in email_sender.sent] == ["student@example.com"]


def test_failed_booking_queues_no_emails(db_session, dispatcher):
    class_session = create_class(db_session, NOW + timedelta(days=2))
    student = create_user(db_session)
    background_tasks = BackgroundTasks()

    with pytest.raises(InsufficientCredits):
        booking_service.create_booking(
            db_session,
            student,
            class_session.id,
            now=NOW,
            dispatcher=BackgroundDispatcher(dispatcher, background_tasks),
        )

    assert background_tasks.tasks == []


def test_no_show_leaves_waitlist_alone(db_session, dispatcher, email_sender):
    class_session = create_class(db_session, NOW + timedelta(hours=2), capacity=1)
    holder = create_user(db_session, "holder@example.com")
    waiting = create_user(db_session, "waiting@example.com")
    give_credits(db_session, holder, 1)
    booking = booking_service.create_booking(db_session, holder, class_session.id, now=NOW)
    entry = waitlist_service.join(db_session, waiting, class_session.id, now=NOW)

    result = booking_service.cancel_booking(
        db_session, holder, booking.id, now=NOW + timedelta(hours=3), dispatcher=dispatcher
    )

    assert result.cancellation_type == models.CancellationType.no_show
    assert result.waitlist_notified == 0
    db_session.refresh(entry)
    assert entry.notified is False
    assert not any(email["subject"].startswith("Spot Available") for email in email_sender.sent)
