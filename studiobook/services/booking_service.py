from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.clock import utc_now
from ..core.constants import DEFAULT_BOOKING_CREDITS
from ..core.exceptions import (
    AlreadyCancelled,
    BookingNotFound,
    ClassFull,
    ClassNotAvailable,
    ClassNotFound,
    DuplicateBooking,
    InvalidBookingStatus,
    ValidationError,
)
from ..db import models
from ..db.models.booking import TERMINAL_STATUSES, BookingStatus
from ..db.models.class_session import ClassStatus
from ..db.models.user import UserRole
from ..db.unit_of_work import UnitOfWork
from . import capacity, credit_ledger, waitlist_service
from .cancellation_policy import classify_cancellation, get_policy, hours_between
from .events import BookingCancelled, BookingCreated

logger = logging.getLogger(__name__)

_DUPLICATE_BOOKING_CONSTRAINT = "uq_booking_confirmed_user_class"


@dataclass(slots=True)
class CancellationResult:
    booking: models.Booking
    cancellation_type: models.CancellationType
    hours_until_class: float
    cancellation_window_hours: int
    penalty: str | None
    credits_refunded: int
    class_date_time: datetime
    cancelled_at: datetime
    message: str
    waitlist_notified: int = 0


def _ensure_bookable(class_session: models.ClassSession, now: datetime) -> None:
    if class_session.status != ClassStatus.scheduled:
        raise ClassNotAvailable("This class is not open for booking", status=class_session.status.value)
    if class_session.starts_at <= now:
        raise ClassNotAvailable("This class has already started")


def _confirmed_booking_id(db: Session, user_id: int, class_id: int) -> int | None:
    return db.scalar(
        select(models.Booking.id).where(
            models.Booking.user_id == user_id,
            models.Booking.class_session_id == class_id,
            models.Booking.status == BookingStatus.confirmed,
        )
    )


def _is_duplicate_booking(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if constraint:
        return constraint == _DUPLICATE_BOOKING_CONSTRAINT
    # sqlite reports the columns instead of the index name
    return "bookings.user_id, bookings.class_session_id" in str(exc.orig)


def _instructor_contact(class_session: models.ClassSession) -> tuple[str, str | None]:
    instructor = class_session.instructor
    if instructor is None:
        return "TBA", None
    email = instructor.user.email if instructor.user else None
    return instructor.name, email


def create_booking(
    db: Session,
    student: models.User,
    class_id: int,
    credits_requested: int = DEFAULT_BOOKING_CREDITS,
    now: datetime | None = None,
    dispatcher=None,
) -> models.Booking:
    if credits_requested < 1:
        raise ValidationError(
            "creditsUsed must be a positive integer", code="INVALID_CREDITS_USED"
        )
    now = now or utc_now()
    settings = get_settings()
    class_session = db.get(models.ClassSession, class_id)
    if class_session is None:
        raise ClassNotFound()
    _ensure_bookable(class_session, now)
    policy = get_policy(db)
    try:
        with UnitOfWork(db, dispatcher) as uow:
            locked_class = (
                db.execute(
                    select(models.ClassSession)
                    .where(models.ClassSession.id == class_session.id)
                    .with_for_update()
                )
                .scalar_one()
            )
            _ensure_bookable(locked_class, now)
            if _confirmed_booking_id(db, student.id, locked_class.id):
                raise DuplicateBooking()
            booked = capacity.confirmed_count(db, locked_class.id)
            if booked >= locked_class.capacity:
                raise ClassFull(capacity=locked_class.capacity)

            if locked_class.date in settings.free_dates:
                credits_used = 0
            else:
                credit_ledger.deduct(uow, student.id, credits_requested, now)
                credits_used = credits_requested

            booking = models.Booking(
                user_id=student.id,
                class_session_id=locked_class.id,
                status=BookingStatus.confirmed,
                booked_at=now,
                credits_used=credits_used,
            )
            db.add(booking)
            db.flush()

            instructor_name, instructor_email = _instructor_contact(locked_class)
            uow.emit(
                BookingCreated(
                    booking_id=booking.id,
                    student_id=student.id,
                    student_email=student.email,
                    student_name=student.display_name,
                    class_id=locked_class.id,
                    class_name=locked_class.name,
                    class_starts_at=locked_class.starts_at,
                    instructor_name=instructor_name,
                    instructor_email=instructor_email,
                    credits_used=credits_used,
                    booked_seats=booked + 1,
                    capacity=locked_class.capacity,
                    cancellation_policy=policy.describe(),
                )
            )
    except IntegrityError as exc:
        if _is_duplicate_booking(exc):
            raise DuplicateBooking() from exc
        raise
    logger.info(
        "Booking created",
        extra={
            "booking_id": booking.id,
            "user_id": student.id,
            "class_id": class_id,
            "credits_used": credits_used,
        },
    )
    return booking


def _cancellation_message(result_type: models.CancellationType, penalty: str | None) -> str:
    if result_type == models.CancellationType.on_time:
        return "Booking cancelled successfully. No penalty applied."
    if result_type == models.CancellationType.late:
        return f"Late cancellation recorded. Penalty: {penalty}"
    return f"No-show recorded. Penalty: {penalty}"


def _ensure_cancellable(booking: models.Booking) -> None:
    if booking.status in TERMINAL_STATUSES:
        raise AlreadyCancelled(
            "Booking is already cancelled", currentStatus=booking.status.value
        )
    if booking.status != BookingStatus.confirmed:
        raise InvalidBookingStatus(
            "Only confirmed bookings can be cancelled", currentStatus=booking.status.value
        )


def cancel_booking(
    db: Session,
    actor: models.User,
    booking_id: int,
    now: datetime | None = None,
    dispatcher=None,
) -> CancellationResult:
    now = now or utc_now()
    booking = db.get(models.Booking, booking_id)
    if booking is None or (actor.role == UserRole.student and booking.user_id != actor.id):
        raise BookingNotFound()
    _ensure_cancellable(booking)
    class_session = booking.class_session
    if class_session is None:
        raise ClassNotFound("Related class not found")

    policy = get_policy(db)
    class_date_time = class_session.starts_at
    outcome = classify_cancellation(hours_between(now, class_date_time), policy)

    with UnitOfWork(db, dispatcher) as uow:
        locked = (
            db.execute(
                select(models.Booking).where(models.Booking.id == booking.id).with_for_update()
            )
            .scalar_one()
        )
        _ensure_cancellable(locked)
        locked.status = outcome.status
        locked.cancelled_at = now
        locked.cancellation_type = outcome.cancellation_type
        credits_refunded = 0
        if outcome.refund and locked.credits_used > 0:
            credits_refunded = credit_ledger.refund(uow, locked.user_id, locked.credits_used, now)
        db.flush()

        student = locked.user
        instructor_name, instructor_email = _instructor_contact(class_session)
        uow.emit(
            BookingCancelled(
                booking_id=locked.id,
                student_id=student.id,
                student_email=student.email,
                student_name=student.display_name,
                class_id=class_session.id,
                class_name=class_session.name,
                class_starts_at=class_date_time,
                instructor_name=instructor_name,
                instructor_email=instructor_email,
                cancellation_type=outcome.cancellation_type.value,
                credits_refunded=credits_refunded,
                penalty=outcome.penalty,
            )
        )
    logger.info(
        "Booking cancelled",
        extra={
            "booking_id": locked.id,
            "cancellation_type": outcome.cancellation_type.value,
            "credits_refunded": credits_refunded,
        },
    )

    notified = 0
    if class_date_time > now:
        try:
            notified = len(waitlist_service.notify_on_seat_freed(db, class_session.id, dispatcher))
        except Exception:
            logger.exception(
                "Waitlist notification pass failed", extra={"class_id": class_session.id}
            )

    return CancellationResult(
        booking=locked,
        cancellation_type=outcome.cancellation_type,
        hours_until_class=max(outcome.hours_until_class, 0.0),
        cancellation_window_hours=policy.cancellation_window_hours,
        penalty=outcome.penalty,
        credits_refunded=credits_refunded,
        class_date_time=class_date_time,
        cancelled_at=now,
        message=_cancellation_message(outcome.cancellation_type, outcome.penalty),
        waitlist_notified=notified,
    )


def _apply_no_show(db: Session, booking: models.Booking, actor: models.User) -> None:
    if booking.status != BookingStatus.confirmed:
        raise InvalidBookingStatus(
            "Only confirmed bookings can be marked as no-show",
            currentStatus=booking.status.value,
        )
    booking.status = BookingStatus.no_show
    booking.cancellation_type = models.CancellationType.no_show
    db.add(
        models.AuditLog(
            actor_type=(
                models.ActorType.admin if actor.role == UserRole.admin else models.ActorType.user
            ),
            actor_id=actor.id,
            action="booking_no_show",
            payload={
                "booking_id": booking.id,
                "class_id": booking.class_session_id,
                "credits_used": booking.credits_used,
            },
        )
    )


def _ensure_started(class_session: models.ClassSession, now: datetime) -> None:
    if class_session.starts_at > now:
        raise ValidationError(
            "Attendance can only be recorded once the class has started",
            code="CLASS_NOT_STARTED",
        )


def mark_no_show(
    db: Session,
    actor: models.User,
    booking_id: int,
    now: datetime | None = None,
) -> models.Booking:
    """Record that a booked student did not turn up.

    The credit stays spent and the waitlist is left alone; the class has
    already started.
    """
    now = now or utc_now()
    booking = db.get(models.Booking, booking_id)
    if booking is None:
        raise BookingNotFound()
    if booking.class_session is None:
        raise ClassNotFound("Related class not found")
    _ensure_started(booking.class_session, now)

    with UnitOfWork(db):
        locked = (
            db.execute(
                select(models.Booking).where(models.Booking.id == booking.id).with_for_update()
            )
            .scalar_one()
        )
        _apply_no_show(db, locked, actor)
    logger.info(
        "Booking marked as no-show",
        extra={"booking_id": locked.id, "actor_id": actor.id},
    )
    return locked


def record_class_attendance(
    db: Session,
    actor: models.User,
    class_id: int,
    no_show_ids: list[int],
    now: datetime | None = None,
) -> tuple[models.ClassSession, list[models.Booking]]:
    """Mark the listed bookings as no-shows and close the class as completed."""
    now = now or utc_now()
    class_session = db.get(models.ClassSession, class_id)
    if class_session is None:
        raise ClassNotFound()
    if class_session.status == ClassStatus.cancelled:
        raise ClassNotAvailable("This class was cancelled", status=class_session.status.value)
    _ensure_started(class_session, now)

    with UnitOfWork(db):
        bookings = (
            db.execute(
                select(models.Booking)
                .where(
                    models.Booking.class_session_id == class_session.id,
                    models.Booking.id.in_(no_show_ids),
                )
                .with_for_update()
            )
            .scalars()
            .all()
        )
        missing = set(no_show_ids) - {booking.id for booking in bookings}
        if missing:
            raise BookingNotFound(
                "Booking not found for this class", bookingIds=sorted(missing)
            )
        for booking in bookings:
            _apply_no_show(db, booking, actor)
        class_session.status = ClassStatus.completed
    logger.info(
        "Attendance recorded",
        extra={"class_id": class_session.id, "no_shows": len(bookings)},
    )
    return class_session, list(bookings)


def list_bookings(
    db: Session,
    *,
    user_id: int | None = None,
    class_id: int | None = None,
    status: BookingStatus | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[models.Booking]:
    query = db.query(models.Booking)
    if user_id is not None:
        query = query.filter(models.Booking.user_id == user_id)
    if class_id is not None:
        query = query.filter(models.Booking.class_session_id == class_id)
    if status is not None:
        query = query.filter(models.Booking.status == status)
    return (
        query.order_by(models.Booking.booked_at.desc(), models.Booking.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def booking_stats(db: Session) -> dict[str, int]:
    stats = {status.value: 0 for status in BookingStatus}
    rows = (
        db.query(models.Booking.status, func.count(models.Booking.id))
        .group_by(models.Booking.status)
        .all()
    )
    for status, count in rows:
        stats[status.value] = int(count)
    stats["total"] = sum(stats.values())
    return stats


__all__ = [
    "CancellationResult",
    "booking_stats",
    "cancel_booking",
    "create_booking",
    "list_bookings",
    "mark_no_show",
    "record_class_attendance",
]
