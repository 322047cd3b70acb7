from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import utc_now
from ..core.exceptions import ValidationError
from ..db import models
from ..db.unit_of_work import UnitOfWork
from . import credit_ledger

logger = logging.getLogger(__name__)


def record_payment(
    db: Session,
    user: models.User,
    *,
    amount: float,
    method: models.PaymentMethod,
    package: models.Package | None = None,
    currency: str = "USD",
    external_reference: str | None = None,
) -> models.Payment:
    if amount < 0:
        raise ValidationError("amount must not be negative", code="INVALID_AMOUNT")
    payment = models.Payment(
        user_id=user.id,
        package_id=package.id if package else None,
        amount=amount,
        currency=currency.upper(),
        method=method,
        external_reference=external_reference,
        status=models.PaymentStatus.pending,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def _ensure_completable(payment: models.Payment) -> None:
    if payment.status not in (models.PaymentStatus.pending, models.PaymentStatus.completed):
        raise ValidationError(
            f"Cannot complete a {payment.status.value} payment",
            code="INVALID_PAYMENT_STATUS",
        )


def complete_payment(
    db: Session,
    payment: models.Payment,
    now: datetime | None = None,
) -> tuple[models.Payment, models.CreditLot | None]:
    """Mark a payment completed and grant the credits of its package.

    Completing an already completed payment grants nothing.
    """
    _ensure_completable(payment)
    now = now or utc_now()
    lot = None
    with UnitOfWork(db) as uow:
        locked = (
            db.execute(
                select(models.Payment)
                .where(models.Payment.id == payment.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalar_one()
        )
        _ensure_completable(locked)
        if locked.status == models.PaymentStatus.completed:
            return locked, None
        locked.status = models.PaymentStatus.completed
        locked.completed_at = now
        package = db.get(models.Package, locked.package_id) if locked.package_id else None
        if package:
            lot = credit_ledger.grant_credits(
                uow,
                user_id=locked.user_id,
                credits=package.credits,
                purchase_type=models.PurchaseType.package,
                expiration_days=package.expiration_days,
                package=package,
                payment=locked,
                now=now,
            )
    logger.info(
        "Payment completed",
        extra={
            "payment_id": locked.id,
            "user_id": locked.user_id,
            "credits_granted": lot.credits_total if lot else 0,
        },
    )
    return locked, lot


def fail_payment(db: Session, payment: models.Payment) -> models.Payment:
    if payment.status == models.PaymentStatus.completed:
        raise ValidationError(
            "Cannot fail a completed payment", code="INVALID_PAYMENT_STATUS"
        )
    payment.status = models.PaymentStatus.failed
    db.commit()
    db.refresh(payment)
    return payment
