from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session, selectinload

from ..core.clock import utc_now
from ..db import models
from ..db.unit_of_work import UnitOfWork
from . import capacity, credit_ledger
from .events import ClassCancelled

logger = logging.getLogger(__name__)


def list_classes(
    db: Session,
    *,
    from_date: date | None = None,
    to_date: date | None = None,
    class_type_id: int | None = None,
    instructor_id: int | None = None,
    status: models.ClassStatus | None = None,
) -> list[models.ClassSession]:
    query = db.query(models.ClassSession).options(
        selectinload(models.ClassSession.class_type),
        selectinload(models.ClassSession.instructor),
    )
    if from_date:
        query = query.filter(models.ClassSession.date >= from_date)
    if to_date:
        query = query.filter(models.ClassSession.date <= to_date)
    if class_type_id:
        query = query.filter(models.ClassSession.class_type_id == class_type_id)
    if instructor_id:
        query = query.filter(models.ClassSession.instructor_id == instructor_id)
    if status:
        query = query.filter(models.ClassSession.status == status)
    classes = query.order_by(models.ClassSession.date, models.ClassSession.start_time).all()
    annotate_seats(db, classes)
    return classes


def annotate_seats(db: Session, classes: list[models.ClassSession]) -> None:
    counts = capacity.confirmed_counts(db, [item.id for item in classes])
    for item in classes:
        booked = counts.get(item.id, 0)
        setattr(item, "booked_seats", booked)
        setattr(item, "available_seats", max(item.capacity - booked, 0))


def cancel_class(
    db: Session,
    class_session: models.ClassSession,
    *,
    actor_id: int | None = None,
    now: datetime | None = None,
    dispatcher=None,
) -> models.ClassSession:
    """Cancel a class, release every confirmed booking and refund its credits."""
    if class_session.status == models.ClassStatus.cancelled:
        return class_session

    now = now or utc_now()
    with UnitOfWork(db, dispatcher) as uow:
        class_session.status = models.ClassStatus.cancelled
        bookings = (
            db.query(models.Booking)
            .options(selectinload(models.Booking.user))
            .filter(models.Booking.class_session_id == class_session.id)
            .filter(models.Booking.status == models.BookingStatus.confirmed)
            .with_for_update()
            .all()
        )
        refunds: dict[int, int] = {}
        for booking in bookings:
            refunded = 0
            if booking.credits_used > 0:
                refunded = credit_ledger.refund(uow, booking.user_id, booking.credits_used, now)
            booking.status = models.BookingStatus.cancelled
            booking.cancelled_at = now
            booking.cancellation_type = models.CancellationType.class_cancelled
            refunds[booking.id] = refunded
            uow.emit(
                ClassCancelled(
                    booking_id=booking.id,
                    student_id=booking.user.id,
                    student_email=booking.user.email,
                    student_name=booking.user.display_name,
                    class_id=class_session.id,
                    class_name=class_session.name,
                    class_starts_at=class_session.starts_at,
                    credits_refunded=refunded,
                )
            )
        db.add(
            models.AuditLog(
                actor_type=models.ActorType.admin,
                actor_id=actor_id,
                action="class_cancelled",
                payload={
                    "class_id": class_session.id,
                    "class_starts_at": class_session.starts_at.isoformat(),
                    "bookings_cancelled": len(bookings),
                    "credits_refunded": refunds,
                },
            )
        )
    logger.info(
        "Class cancelled",
        extra={"class_id": class_session.id, "bookings_cancelled": len(bookings)},
    )
    return class_session
