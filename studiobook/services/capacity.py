from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import models


def confirmed_count(db: Session, class_session_id: int) -> int:
    count = db.scalar(
        select(func.count(models.Booking.id)).where(
            models.Booking.class_session_id == class_session_id,
            models.Booking.status == models.BookingStatus.confirmed,
        )
    )
    return int(count or 0)


def has_capacity(db: Session, class_session: models.ClassSession) -> bool:
    return confirmed_count(db, class_session.id) < class_session.capacity


def spots_available(db: Session, class_session: models.ClassSession) -> int:
    return max(class_session.capacity - confirmed_count(db, class_session.id), 0)


def confirmed_counts(db: Session, class_session_ids: list[int]) -> dict[int, int]:
    if not class_session_ids:
        return {}
    rows = (
        db.query(models.Booking.class_session_id, func.count(models.Booking.id))
        .filter(models.Booking.class_session_id.in_(class_session_ids))
        .filter(models.Booking.status == models.BookingStatus.confirmed)
        .group_by(models.Booking.class_session_id)
        .all()
    )
    return {class_id: int(count) for class_id, count in rows}
