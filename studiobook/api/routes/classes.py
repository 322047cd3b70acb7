from datetime import date
from typing import Any
from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...core.exceptions import ValidationError
from ...services import booking_service, schedule_service
from ...services.notification_service import BackgroundDispatcher
from .bookings import parse_int

router = APIRouter(prefix="/classes", tags=["classes"])


def _check_references(db: Session, class_type_id: int | None, instructor_id: int | None) -> None:
    if class_type_id is not None and not db.get(models.ClassType, class_type_id):
        raise HTTPException(status_code=404, detail="Class type not found")
    if instructor_id is not None and not db.get(models.Instructor, instructor_id):
        raise HTTPException(status_code=404, detail="Instructor not found")


@router.get("", response_model=list[schemas.ClassSession])
def list_classes(
    from_date: date | None = None,
    to_date: date | None = None,
    class_type_id: int | None = None,
    instructor_id: int | None = None,
    status: models.ClassStatus | None = None,
    db: Session = Depends(get_db),
):
    return schedule_service.list_classes(
        db,
        from_date=from_date,
        to_date=to_date,
        class_type_id=class_type_id,
        instructor_id=instructor_id,
        status=status,
    )


@router.get("/{class_id}", response_model=schemas.ClassSession)
def get_class(class_id: int, db: Session = Depends(get_db)):
    class_session = db.get(models.ClassSession, class_id)
    if not class_session:
        raise HTTPException(status_code=404, detail="Class not found")
    schedule_service.annotate_seats(db, [class_session])
    return class_session


@router.post("", response_model=schemas.ClassSession)
def create_class(
    payload: schemas.ClassSessionCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    _check_references(db, payload.class_type_id, payload.instructor_id)
    if payload.end_time <= payload.start_time:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    class_session = models.ClassSession(**payload.model_dump())
    db.add(class_session)
    db.commit()
    db.refresh(class_session)
    schedule_service.annotate_seats(db, [class_session])
    return class_session


@router.patch("/{class_id}", response_model=schemas.ClassSession)
def update_class(
    class_id: int,
    payload: schemas.ClassSessionUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    class_session = db.get(models.ClassSession, class_id)
    if not class_session:
        raise HTTPException(status_code=404, detail="Class not found")
    data = payload.model_dump(exclude_unset=True)
    _check_references(db, data.get("class_type_id"), data.get("instructor_id"))
    if "status" in data:
        try:
            data["status"] = models.ClassStatus(data["status"])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid class status") from exc
        if data["status"] == models.ClassStatus.cancelled:
            raise HTTPException(status_code=400, detail="Use the cancel endpoint to cancel a class")
    if "capacity" in data:
        schedule_service.annotate_seats(db, [class_session])
        if data["capacity"] < class_session.booked_seats:
            raise HTTPException(
                status_code=400, detail="capacity cannot be lower than confirmed bookings"
            )
    for key, value in data.items():
        setattr(class_session, key, value)
    db.commit()
    db.refresh(class_session)
    schedule_service.annotate_seats(db, [class_session])
    return class_session


@router.post("/{class_id}/cancel", response_model=schemas.ClassSession)
def cancel_class(
    class_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
    dispatcher: BackgroundDispatcher = Depends(deps.get_background_dispatcher),
):
    class_session = db.get(models.ClassSession, class_id)
    if not class_session:
        raise HTTPException(status_code=404, detail="Class not found")
    class_session = schedule_service.cancel_class(
        db,
        class_session,
        actor_id=admin.id,
        dispatcher=dispatcher,
    )
    schedule_service.annotate_seats(db, [class_session])
    return class_session


@router.post("/{class_id}/attendance", response_model=schemas.ClassAttendance)
def record_attendance(
    class_id: int,
    payload: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    staff: models.User = Depends(deps.require_roles("admin", "instructor")),
):
    raw_ids = payload.get("noShows") or []
    if not isinstance(raw_ids, list):
        raise ValidationError("noShows must be a list of booking ids", code="INVALID_NO_SHOWS")
    no_show_ids = [
        parse_int(value, message="noShows must be a list of booking ids", code="INVALID_NO_SHOWS")
        for value in raw_ids
    ]
    class_session, bookings = booking_service.record_class_attendance(
        db, staff, class_id, no_show_ids
    )
    return schemas.ClassAttendance(
        class_id=class_session.id,
        class_status=class_session.status.value,
        updated_count=len(bookings),
        no_shows=[schemas.Booking.from_model(booking) for booking in bookings],
        message=f"Attendance recorded for {len(bookings)} bookings",
    )
