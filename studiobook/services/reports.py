"""Aggregate reports for the studio owner.

Booking reports are ranged on the class date; revenue is ranged on the date
the payment was recorded.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, case, distinct, func
from sqlalchemy.orm import Session

from ..core.clock import utc_now
from ..core.exceptions import ValidationError
from ..db import models

DEFAULT_RANGE_DAYS = 30

_CANCELLED = (models.BookingStatus.cancelled, models.BookingStatus.late_cancel)
# statuses whose credits stay consumed
_SPENT = (
    models.BookingStatus.confirmed,
    models.BookingStatus.late_cancel,
    models.BookingStatus.no_show,
)


def resolve_range(
    start: dt.date | None,
    end: dt.date | None,
    today: dt.date | None = None,
) -> tuple[dt.date, dt.date]:
    end = end or today or utc_now().date()
    start = start or end - dt.timedelta(days=DEFAULT_RANGE_DAYS)
    if start > end:
        raise ValidationError(
            "Start date must be before or equal to end date", code="INVALID_DATE_RANGE"
        )
    return start, end


def _count_status(*statuses: models.BookingStatus):
    return func.sum(case((models.Booking.status.in_(statuses), 1), else_=0))


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _money(value) -> float:
    return float(round(Decimal(value or 0), 2))


def revenue_report(
    db: Session,
    start: dt.date,
    end: dt.date,
    method: models.PaymentMethod | None = None,
) -> dict:
    paid_on = func.date(models.Payment.created_at, type_=Date)
    query = db.query(models.Payment).filter(paid_on >= start, paid_on <= end)
    if method is not None:
        query = query.filter(models.Payment.method == method)
    payments = query.all()

    totals = {status: Decimal(0) for status in models.PaymentStatus}
    by_method = {item.value: Decimal(0) for item in models.PaymentMethod}
    by_date: dict[str, Decimal] = {}
    completed = 0
    for payment in payments:
        amount = Decimal(payment.amount)
        totals[payment.status] += amount
        if payment.status != models.PaymentStatus.completed:
            continue
        completed += 1
        by_method[payment.method.value] += amount
        day = payment.created_at.date().isoformat()
        by_date[day] = by_date.get(day, Decimal(0)) + amount

    revenue = totals[models.PaymentStatus.completed]
    return {
        "total_revenue": _money(revenue),
        "total_transactions": completed,
        "average_transaction_amount": _money(revenue / completed if completed else 0),
        "payment_method_breakdown": {key: _money(value) for key, value in by_method.items()},
        "pending_payments": _money(totals[models.PaymentStatus.pending]),
        "refunded_amount": _money(totals[models.PaymentStatus.refunded]),
        "revenue_by_date": [
            {"date": day, "revenue": _money(amount)} for day, amount in sorted(by_date.items())
        ],
        "date_range": {"start_date": start, "end_date": end},
    }


def attendance_report(db: Session, start: dt.date, end: dt.date) -> dict:
    row = (
        db.query(
            func.count(models.Booking.id),
            _count_status(models.BookingStatus.confirmed),
            _count_status(*_CANCELLED),
            _count_status(models.BookingStatus.no_show),
            func.count(distinct(models.Booking.class_session_id)),
        )
        .join(models.ClassSession, models.Booking.class_session_id == models.ClassSession.id)
        .filter(models.ClassSession.date >= start, models.ClassSession.date <= end)
        .one()
    )
    total, confirmed, cancelled, no_shows, classes = (int(value or 0) for value in row)
    completed_classes = (
        db.query(func.count(models.ClassSession.id))
        .filter(
            models.ClassSession.date >= start,
            models.ClassSession.date <= end,
            models.ClassSession.status == models.ClassStatus.completed,
        )
        .scalar()
    )
    return {
        "total_bookings": total,
        "confirmed_bookings": confirmed,
        "cancelled_bookings": cancelled,
        "no_shows": no_shows,
        "completed_classes": int(completed_classes or 0),
        "attendance_rate": _percent(confirmed, total),
        "cancellation_rate": _percent(cancelled, total),
        "no_show_rate": _percent(no_shows, total),
        "average_bookings_per_class": round(total / classes, 2) if classes else 0.0,
        "date_range": {"start_date": start, "end_date": end},
    }


def popular_classes_report(db: Session, start: dt.date, end: dt.date, limit: int = 10) -> dict:
    booking_count = func.count(models.Booking.id)
    confirmed_count = _count_status(models.BookingStatus.confirmed)
    in_range = (models.ClassSession.date >= start, models.ClassSession.date <= end)

    top_classes = (
        db.query(
            models.ClassSession.id,
            models.ClassSession.date,
            models.ClassSession.start_time,
            models.ClassSession.instructor_id,
            models.ClassType.name,
            booking_count,
            confirmed_count,
        )
        .join(models.ClassType, models.ClassSession.class_type_id == models.ClassType.id)
        .outerjoin(models.Booking, models.Booking.class_session_id == models.ClassSession.id)
        .filter(*in_range)
        .group_by(
            models.ClassSession.id,
            models.ClassSession.date,
            models.ClassSession.start_time,
            models.ClassSession.instructor_id,
            models.ClassType.name,
        )
        .order_by(booking_count.desc(), models.ClassSession.date, models.ClassSession.id)
        .limit(limit)
        .all()
    )
    top_class_types = (
        db.query(models.ClassType.id, models.ClassType.name, booking_count, confirmed_count)
        .join(models.ClassSession, models.ClassSession.class_type_id == models.ClassType.id)
        .outerjoin(models.Booking, models.Booking.class_session_id == models.ClassSession.id)
        .filter(*in_range)
        .group_by(models.ClassType.id, models.ClassType.name)
        .order_by(booking_count.desc(), models.ClassType.id)
        .limit(limit)
        .all()
    )
    time_slots = (
        db.query(
            models.ClassSession.start_time,
            booking_count,
            confirmed_count,
            func.count(distinct(models.ClassSession.id)),
        )
        .outerjoin(models.Booking, models.Booking.class_session_id == models.ClassSession.id)
        .filter(*in_range)
        .group_by(models.ClassSession.start_time)
        .order_by(booking_count.desc(), models.ClassSession.start_time)
        .limit(limit)
        .all()
    )
    return {
        "top_classes": [
            {
                "class_id": class_id,
                "class_type_name": name,
                "instructor_id": instructor_id,
                "date": date,
                "start_time": start_time,
                "booking_count": int(bookings or 0),
                "confirmed_count": int(confirmed or 0),
            }
            for class_id, date, start_time, instructor_id, name, bookings, confirmed in top_classes
        ],
        "top_class_types": [
            {
                "class_type_id": type_id,
                "class_type_name": name,
                "total_bookings": int(bookings or 0),
                "confirmed_bookings": int(confirmed or 0),
            }
            for type_id, name, bookings, confirmed in top_class_types
        ],
        "most_popular_time_slots": [
            {
                "time_slot": start_time,
                "total_bookings": int(bookings or 0),
                "confirmed_bookings": int(confirmed or 0),
                "classes_count": int(classes or 0),
            }
            for start_time, bookings, confirmed, classes in time_slots
        ],
        "date_range": {"start_date": start, "end_date": end},
    }


def instructor_report(db: Session, start: dt.date, end: dt.date) -> dict:
    """Per-instructor class load and turnout.

    Attendance rate is confirmed bookings over confirmed plus no-shows, so
    cancellations do not count against an instructor.
    """
    rows = (
        db.query(
            models.Instructor.id,
            models.Instructor.name,
            func.count(distinct(models.ClassSession.id)),
            func.count(models.Booking.id),
            _count_status(models.BookingStatus.confirmed),
            _count_status(models.BookingStatus.no_show),
            func.sum(case((models.Booking.status.in_(_SPENT), models.Booking.credits_used), else_=0)),
        )
        .outerjoin(
            models.ClassSession,
            (models.ClassSession.instructor_id == models.Instructor.id)
            & (models.ClassSession.date >= start)
            & (models.ClassSession.date <= end),
        )
        .outerjoin(models.Booking, models.Booking.class_session_id == models.ClassSession.id)
        .filter(models.Instructor.is_active.is_(True))
        .group_by(models.Instructor.id, models.Instructor.name)
        .all()
    )
    instructors = []
    for instructor_id, name, classes, bookings, confirmed, no_shows, credits in rows:
        classes, bookings = int(classes or 0), int(bookings or 0)
        confirmed, no_shows = int(confirmed or 0), int(no_shows or 0)
        instructors.append(
            {
                "instructor_id": instructor_id,
                "instructor_name": name,
                "total_classes": classes,
                "total_bookings": bookings,
                "total_confirmed": confirmed,
                "total_no_shows": no_shows,
                "total_credits_used": int(credits or 0),
                "attendance_rate": _percent(confirmed, confirmed + no_shows),
                "avg_bookings_per_class": round(bookings / classes, 1) if classes else 0.0,
            }
        )
    instructors.sort(key=lambda item: (-item["total_bookings"], item["instructor_id"]))

    confirmed = sum(item["total_confirmed"] for item in instructors)
    no_shows = sum(item["total_no_shows"] for item in instructors)
    return {
        "instructors": instructors,
        "totals": {
            "total_instructors": len(instructors),
            "total_classes": sum(item["total_classes"] for item in instructors),
            "total_bookings": sum(item["total_bookings"] for item in instructors),
            "total_no_shows": no_shows,
            "total_credits_used": sum(item["total_credits_used"] for item in instructors),
            "overall_attendance_rate": _percent(confirmed, confirmed + no_shows),
        },
        "date_range": {"start_date": start, "end_date": end},
    }
