from datetime import timedelta

import pytest

from studiobook.core.exceptions import (
    BookingNotFound,
    ClassNotAvailable,
    InvalidBookingStatus,
    ValidationError,
)
from studiobook.db import models
from studiobook.services import booking_service, credit_ledger, schedule_service

from .helpers import NOW, create_class, create_user, give_credits

AFTER_CLASS = NOW + timedelta(hours=3)


@pytest.fixture()
def started_class(db_session):
    class_session = create_class(db_session, NOW + timedelta(hours=2))
    students = [create_user(db_session, f"s{index}@example.com") for index in range(2)]
    bookings = []
    for student in students:
        give_credits(db_session, student, 1)
        bookings.append(
            booking_service.create_booking(db_session, student, class_session.id, now=NOW)
        )
    instructor = create_user(db_session, "dana@studio.test", role=models.UserRole.instructor)
    return class_session, bookings, instructor


def test_marking_no_show_keeps_credit_spent(db_session, started_class):
    _, bookings, instructor = started_class
    booking = bookings[0]

    marked = booking_service.mark_no_show(db_session, instructor, booking.id, now=AFTER_CLASS)

    assert marked.status == models.BookingStatus.no_show
    assert marked.cancellation_type == models.CancellationType.no_show
    assert marked.credits_used == 1
    assert credit_ledger.available_credits(db_session, booking.user_id, now=AFTER_CLASS) == 0
    audit = db_session.query(models.AuditLog).filter_by(action="booking_no_show").one()
    assert audit.actor_id == instructor.id
    assert audit.actor_type == models.ActorType.user
    assert audit.payload["booking_id"] == booking.id


def test_no_show_cannot_be_marked_before_class(db_session, started_class):
    _, bookings, instructor = started_class

    with pytest.raises(ValidationError) as exc_info:
        booking_service.mark_no_show(db_session, instructor, bookings[0].id, now=NOW)

    assert exc_info.value.code == "CLASS_NOT_STARTED"
    db_session.refresh(bookings[0])
    assert bookings[0].status == models.BookingStatus.confirmed


def test_only_confirmed_bookings_become_no_shows(db_session, started_class):
    _, bookings, instructor = started_class
    booking_service.mark_no_show(db_session, instructor, bookings[0].id, now=AFTER_CLASS)

    with pytest.raises(InvalidBookingStatus) as exc_info:
        booking_service.mark_no_show(db_session, instructor, bookings[0].id, now=AFTER_CLASS)

    assert exc_info.value.extra == {"currentStatus": "no_show"}
    assert db_session.query(models.AuditLog).filter_by(action="booking_no_show").count() == 1


def test_unknown_booking_is_not_found(db_session, started_class):
    _, _, instructor = started_class

    with pytest.raises(BookingNotFound):
        booking_service.mark_no_show(db_session, instructor, 9999, now=AFTER_CLASS)


def test_class_attendance_completes_the_class(db_session, started_class):
    class_session, bookings, instructor = started_class

    completed, no_shows = booking_service.record_class_attendance(
        db_session, instructor, class_session.id, [bookings[1].id], now=AFTER_CLASS
    )

    assert completed.status == models.ClassStatus.completed
    assert [booking.id for booking in no_shows] == [bookings[1].id]
    db_session.refresh(bookings[0])
    assert bookings[0].status == models.BookingStatus.confirmed
    assert bookings[1].status == models.BookingStatus.no_show


def test_class_attendance_rejects_bookings_from_other_classes(db_session, started_class):
    class_session, bookings, instructor = started_class

    with pytest.raises(BookingNotFound) as exc_info:
        booking_service.record_class_attendance(
            db_session, instructor, class_session.id, [bookings[0].id, 9999], now=AFTER_CLASS
        )

    assert exc_info.value.extra == {"bookingIds": [9999]}
    db_session.refresh(class_session)
    db_session.refresh(bookings[0])
    assert class_session.status == models.ClassStatus.scheduled
    assert bookings[0].status == models.BookingStatus.confirmed


def test_cancelled_class_takes_no_attendance(db_session, started_class):
    class_session, _, instructor = started_class
    schedule_service.cancel_class(db_session, class_session, now=NOW)

    with pytest.raises(ClassNotAvailable):
        booking_service.record_class_attendance(
            db_session, instructor, class_session.id, [], now=AFTER_CLASS
        )
