from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.clock import utc_now
from ..core.exceptions import ClassNotFound, DuplicateBooking, WaitlistError
from ..db import models
from ..db.unit_of_work import UnitOfWork
from . import capacity
from .events import WaitlistSeatOpen

logger = logging.getLogger(__name__)


def _lock_class(db: Session, class_id: int) -> models.ClassSession:
    class_session = (
        db.execute(
            select(models.ClassSession)
            .where(models.ClassSession.id == class_id)
            .with_for_update()
        )
        .scalars()
        .first()
    )
    if class_session is None:
        raise ClassNotFound()
    return class_session


def join(
    db: Session,
    student: models.User,
    class_id: int,
    now: datetime | None = None,
) -> models.WaitlistEntry:
    """Append ``student`` to the waitlist of a full class."""
    now = now or utc_now()
    if db.get(models.ClassSession, class_id) is None:
        raise ClassNotFound()
    try:
        with UnitOfWork(db):
            class_session = _lock_class(db, class_id)
            if capacity.has_capacity(db, class_session):
                raise WaitlistError(
                    "This class still has spots available. Book it directly.",
                    code="CLASS_NOT_FULL",
                )
            has_booking = db.scalar(
                select(models.Booking.id).where(
                    models.Booking.user_id == student.id,
                    models.Booking.class_session_id == class_id,
                    models.Booking.status == models.BookingStatus.confirmed,
                )
            )
            if has_booking:
                raise DuplicateBooking("You already have a booking for this class")
            existing = db.scalar(
                select(models.WaitlistEntry.id).where(
                    models.WaitlistEntry.user_id == student.id,
                    models.WaitlistEntry.class_session_id == class_id,
                )
            )
            if existing:
                raise WaitlistError(
                    "You are already on the waitlist for this class",
                    code="ALREADY_ON_WAITLIST",
                )
            last_position = db.scalar(
                select(func.max(models.WaitlistEntry.position)).where(
                    models.WaitlistEntry.class_session_id == class_id
                )
            )
            entry = models.WaitlistEntry(
                user_id=student.id,
                class_session_id=class_id,
                position=(last_position or 0) + 1,
                joined_at=now,
                notified=False,
            )
            db.add(entry)
            db.flush()
    except IntegrityError as exc:
        raise WaitlistError(
            "You are already on the waitlist for this class",
            code="ALREADY_ON_WAITLIST",
        ) from exc
    logger.info(
        "Student joined waitlist",
        extra={"user_id": student.id, "class_id": class_id, "position": entry.position},
    )
    return entry


def notify_on_seat_freed(
    db: Session,
    class_id: int,
    dispatcher=None,
    limit: int | None = None,
) -> list[models.WaitlistEntry]:
    """Tell the first waiting students that seats opened up.

    Entries are marked notified and one event is emitted per entry; nobody is
    booked automatically. Returns the entries that were notified.
    """
    limit = limit or get_settings().waitlist_notify_limit
    notified: list[models.WaitlistEntry] = []
    with UnitOfWork(db, dispatcher) as uow:
        class_session = db.get(models.ClassSession, class_id)
        if class_session is None:
            raise ClassNotFound()
        spots = capacity.spots_available(db, class_session)
        if spots > 0:
            notified = list(
                db.execute(
                    select(models.WaitlistEntry)
                    .where(
                        models.WaitlistEntry.class_session_id == class_id,
                        models.WaitlistEntry.notified.is_(False),
                    )
                    .order_by(models.WaitlistEntry.position)
                    .limit(limit)
                )
                .scalars()
                .all()
            )
        for entry in notified:
            entry.notified = True
            student = entry.user
            uow.emit(
                WaitlistSeatOpen(
                    waitlist_entry_id=entry.id,
                    student_id=student.id,
                    student_email=student.email,
                    student_name=student.display_name,
                    class_id=class_session.id,
                    class_name=class_session.name,
                    class_starts_at=class_session.starts_at,
                    position=entry.position,
                    spots_available=spots,
                )
            )
    if notified:
        logger.info(
            "Notified waitlisted students",
            extra={"class_id": class_id, "count": len(notified)},
        )
    return notified


def list_for_class(db: Session, class_id: int) -> list[models.WaitlistEntry]:
    return (
        db.query(models.WaitlistEntry)
        .filter(models.WaitlistEntry.class_session_id == class_id)
        .order_by(models.WaitlistEntry.position)
        .all()
    )


def entries_for_student(db: Session, user_id: int) -> list[models.WaitlistEntry]:
    return (
        db.query(models.WaitlistEntry)
        .filter(models.WaitlistEntry.user_id == user_id)
        .order_by(models.WaitlistEntry.joined_at.desc(), models.WaitlistEntry.id.desc())
        .all()
    )


__all__ = ["entries_for_student", "join", "list_for_class", "notify_on_seat_freed"]
