from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...api import deps
from ...core.exceptions import NotFoundError
from ...db.session import get_db
from ...db import models, schemas
from ...services import admin as admin_service
from ...services import credit_ledger

router = APIRouter(tags=["credits"])


@router.get("/students/{student_id}/credits", response_model=schemas.CreditSummary)
def student_credits(
    student_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    if user.role == models.UserRole.student and user.id != student_id:
        raise NotFoundError("Student not found", code="STUDENT_NOT_FOUND")
    if not db.get(models.User, student_id):
        raise NotFoundError("Student not found", code="STUDENT_NOT_FOUND")
    summary = credit_ledger.credit_summary(db, student_id)
    return schemas.CreditSummary(
        user_id=summary.user_id,
        total_credits=summary.total_credits,
        lots=[schemas.CreditLot.model_validate(lot) for lot in summary.lots],
    )


@router.post(
    "/admin/credits",
    response_model=schemas.CreditLot,
    status_code=status.HTTP_201_CREATED,
)
def grant_credits(
    payload: schemas.CreditGrant,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.require_roles("admin")),
):
    student = db.get(models.User, payload.user_id)
    if not student:
        raise NotFoundError("Student not found", code="STUDENT_NOT_FOUND")
    package = None
    if payload.package_id is not None:
        package = db.get(models.Package, payload.package_id)
        if not package:
            raise NotFoundError("Package not found", code="PACKAGE_NOT_FOUND")
    return admin_service.grant_credits(
        db,
        admin,
        student,
        credits=payload.credits,
        expiration_days=payload.expiration_days,
        package=package,
        note=payload.note,
    )
