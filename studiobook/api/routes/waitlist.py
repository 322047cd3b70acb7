from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ...api import deps
from ...core.exceptions import ValidationError
from ...db import models, schemas
from ...db.session import get_db
from ...services import waitlist_service
from ...services.notification_service import BackgroundDispatcher
from .bookings import parse_int

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


def _class_id(payload: dict[str, Any]) -> int:
    if payload.get("classId") is None:
        raise ValidationError("classId is required", code="MISSING_CLASS_ID")
    return parse_int(
        payload["classId"], message="classId must be a valid integer", code="INVALID_CLASS_ID"
    )


@router.get("", response_model=list[schemas.WaitlistEntry])
def list_waitlist(
    classId: int | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    if user.role == models.UserRole.student:
        entries = waitlist_service.entries_for_student(db, user.id)
        if classId is not None:
            entries = [entry for entry in entries if entry.class_session_id == classId]
    elif classId is not None:
        entries = waitlist_service.list_for_class(db, classId)
    else:
        entries = (
            db.query(models.WaitlistEntry)
            .order_by(models.WaitlistEntry.class_session_id, models.WaitlistEntry.position)
            .all()
        )
    return [schemas.WaitlistEntry.from_model(entry) for entry in entries]


@router.post("", response_model=schemas.WaitlistEntry, status_code=status.HTTP_201_CREATED)
def join_waitlist(
    payload: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    student: models.User = Depends(deps.get_current_user),
):
    entry = waitlist_service.join(db, student, _class_id(payload))
    return schemas.WaitlistEntry.from_model(entry)


@router.post("/notify", response_model=schemas.WaitlistNotifyResult)
def notify_waitlist(
    payload: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
    dispatcher: BackgroundDispatcher = Depends(deps.get_background_dispatcher),
):
    class_id = _class_id(payload)
    entries = waitlist_service.notify_on_seat_freed(db, class_id, dispatcher)
    return schemas.WaitlistNotifyResult(
        class_id=class_id,
        notified=len(entries),
        entries=[schemas.WaitlistEntry.from_model(entry) for entry in entries],
    )
