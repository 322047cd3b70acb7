from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import payment_service

router = APIRouter(prefix="/payments", tags=["payments"])


def _get_payment(db: Session, payment_id: int) -> models.Payment:
    payment = db.get(models.Payment, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


@router.get("", response_model=list[schemas.Payment])
def list_payments(
    user_id: int | None = None,
    status_filter: models.PaymentStatus | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    query = db.query(models.Payment)
    if user.role != models.UserRole.admin:
        user_id = user.id
    if user_id:
        query = query.filter(models.Payment.user_id == user_id)
    if status_filter:
        query = query.filter(models.Payment.status == status_filter)
    return query.order_by(models.Payment.created_at.desc(), models.Payment.id.desc()).all()


@router.post("", response_model=schemas.Payment, status_code=status.HTTP_201_CREATED)
def record_payment(
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    user = db.get(models.User, payload.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    package = db.get(models.Package, payload.package_id) if payload.package_id else None
    if payload.package_id and not package:
        raise HTTPException(status_code=404, detail="Package not found")
    try:
        method = models.PaymentMethod(payload.method)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid payment method") from exc
    try:
        return payment_service.record_payment(
            db,
            user,
            amount=payload.amount,
            method=method,
            package=package,
            currency=payload.currency,
            external_reference=payload.external_reference,
        )
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Payment reference already recorded") from exc


@router.post("/{payment_id}/complete", response_model=schemas.Payment)
def complete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    payment, _lot = payment_service.complete_payment(db, _get_payment(db, payment_id))
    return payment


@router.post("/{payment_id}/fail", response_model=schemas.Payment)
def fail_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("admin")),
):
    return payment_service.fail_payment(db, _get_payment(db, payment_id))
