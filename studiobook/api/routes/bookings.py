from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ...api import deps
from ...core.constants import DEFAULT_BOOKING_CREDITS
from ...core.exceptions import ValidationError
from ...db import models, schemas
from ...db.session import get_db
from ...services import booking_service
from ...services.notification_service import BackgroundDispatcher

router = APIRouter(prefix="/bookings", tags=["bookings"])


def parse_int(value: Any, *, message: str, code: str) -> int:
    """Accept ints and numeric strings, the way JSON clients send ids."""
    if isinstance(value, bool):
        raise ValidationError(message, code=code)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    raise ValidationError(message, code=code)


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    studentId: int | None = None,
    classId: int | None = None,
    status: models.BookingStatus | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    if user.role == models.UserRole.student:
        studentId = user.id
    bookings = booking_service.list_bookings(
        db,
        user_id=studentId,
        class_id=classId,
        status=status,
        limit=min(limit, 500),
        offset=offset,
    )
    return [schemas.Booking.from_model(booking) for booking in bookings]


@router.get("/stats", response_model=schemas.BookingStats)
def booking_stats(
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    return booking_service.booking_stats(db)


@router.post(
    "",
    response_model=schemas.BookingCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(deps.rate_limit("booking_create"))],
)
def create_booking(
    payload: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    student: models.User = Depends(deps.get_current_user),
    dispatcher: BackgroundDispatcher = Depends(deps.get_background_dispatcher),
):
    if payload.get("classId") is None:
        raise ValidationError("classId is required", code="MISSING_CLASS_ID")
    class_id = parse_int(
        payload["classId"], message="classId must be a valid integer", code="INVALID_CLASS_ID"
    )
    credits = payload.get("creditsUsed")
    if credits is None:
        credits = DEFAULT_BOOKING_CREDITS
    else:
        credits = parse_int(
            credits, message="creditsUsed must be a valid integer", code="INVALID_CREDITS_USED"
        )
    booking = booking_service.create_booking(
        db, student, class_id, credits, dispatcher=dispatcher
    )
    return schemas.BookingCreated(
        booking=schemas.Booking.from_model(booking),
        message="Booking confirmed",
    )


@router.post(
    "/{booking_id}/cancel",
    response_model=schemas.BookingCancelled,
    dependencies=[Depends(deps.rate_limit("booking_cancel"))],
)
def cancel_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
    dispatcher: BackgroundDispatcher = Depends(deps.get_background_dispatcher),
):
    booking_pk = parse_int(booking_id, message="Valid booking ID is required", code="INVALID_ID")
    result = booking_service.cancel_booking(db, user, booking_pk, dispatcher=dispatcher)
    return schemas.BookingCancelled(
        booking=schemas.Booking.from_model(result.booking),
        cancellation_details=schemas.CancellationDetails(
            cancellation_type=result.cancellation_type.value,
            hours_until_class=result.hours_until_class,
            cancellation_window_hours=result.cancellation_window_hours,
            penalty=result.penalty,
            credits_refunded=result.credits_refunded,
            class_date_time=result.class_date_time,
            cancelled_at=result.cancelled_at,
        ),
        message=result.message,
    )


@router.put("/{booking_id}/attendance", response_model=schemas.BookingAttendance)
def mark_attendance(
    booking_id: str,
    payload: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    staff: models.User = Depends(deps.require_roles("admin", "instructor")),
):
    booking_pk = parse_int(booking_id, message="Valid booking ID is required", code="INVALID_ID")
    if payload.get("status") != models.BookingStatus.no_show.value:
        raise ValidationError("Invalid status. Must be: no_show", code="INVALID_STATUS")
    booking = booking_service.mark_no_show(db, staff, booking_pk)
    return schemas.BookingAttendance(
        booking=schemas.Booking.from_model(booking),
        message="Booking marked as no_show",
    )
