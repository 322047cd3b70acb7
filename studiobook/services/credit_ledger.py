from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.clock import utc_now
from ..core.exceptions import InsufficientCredits
from ..db import models
from ..db.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CreditSummary:
    user_id: int
    total_credits: int
    lots: list[models.CreditLot]


def _unexpired(now: datetime):
    return or_(models.CreditLot.expires_at.is_(None), models.CreditLot.expires_at > now)


def _fifo_order():
    return (
        models.CreditLot.expires_at.asc().nulls_last(),
        models.CreditLot.id.asc(),
    )


def active_lots(db: Session, user_id: int, now: datetime | None = None) -> list[models.CreditLot]:
    now = now or utc_now()
    return list(
        db.execute(
            select(models.CreditLot)
            .where(
                models.CreditLot.user_id == user_id,
                models.CreditLot.is_active.is_(True),
                models.CreditLot.credits_remaining > 0,
                _unexpired(now),
            )
            .order_by(*_fifo_order())
        )
        .scalars()
        .all()
    )


def available_credits(db: Session, user_id: int, now: datetime | None = None) -> int:
    now = now or utc_now()
    total = db.scalar(
        select(func.coalesce(func.sum(models.CreditLot.credits_remaining), 0)).where(
            models.CreditLot.user_id == user_id,
            models.CreditLot.is_active.is_(True),
            _unexpired(now),
        )
    )
    return int(total or 0)


def credit_summary(db: Session, user_id: int, now: datetime | None = None) -> CreditSummary:
    lots = active_lots(db, user_id, now)
    return CreditSummary(
        user_id=user_id,
        total_credits=sum(lot.credits_remaining for lot in lots),
        lots=lots,
    )


def deduct(uow: UnitOfWork, user_id: int, amount: int, now: datetime | None = None) -> list[models.CreditLot]:
    """Consume ``amount`` credits, soonest-expiring lots first.

    Runs inside the caller's unit of work; the lots are locked for the rest of
    the transaction so concurrent bookings cannot spend the same credit.
    """
    if amount < 1:
        raise ValueError("amount must be at least 1")
    now = now or utc_now()
    lots = list(
        uow.db.execute(
            select(models.CreditLot)
            .where(
                models.CreditLot.user_id == user_id,
                models.CreditLot.is_active.is_(True),
                models.CreditLot.credits_remaining > 0,
                _unexpired(now),
            )
            .order_by(*_fifo_order())
            .with_for_update()
        )
        .scalars()
        .all()
    )
    available = sum(lot.credits_remaining for lot in lots)
    if available == 0:
        raise InsufficientCredits(
            "You have no credits available. Please purchase a package to book classes.",
            available=0,
            required=amount,
        )
    if available < amount:
        raise InsufficientCredits(
            f"Not enough credits: {available} available, {amount} required.",
            available=available,
            required=amount,
        )

    touched: list[models.CreditLot] = []
    remaining = amount
    for lot in lots:
        if remaining == 0:
            break
        used = min(lot.credits_remaining, remaining)
        lot.credits_remaining -= used
        remaining -= used
        if lot.credits_remaining == 0:
            lot.is_active = False
        touched.append(lot)
    uow.db.flush()
    return touched


def refund(uow: UnitOfWork, user_id: int, amount: int, now: datetime | None = None) -> int:
    """Return ``amount`` credits to the student's soonest-expiring lot.

    Active lots are preferred; a lot that was deactivated because it ran out is
    reactivated. Returns the number of credits refunded, ``0`` when no lot
    could take them.
    """
    if amount <= 0:
        return 0
    now = now or utc_now()
    lot = (
        uow.db.execute(
            select(models.CreditLot)
            .where(
                models.CreditLot.user_id == user_id,
                _unexpired(now),
                or_(
                    models.CreditLot.is_active.is_(True),
                    models.CreditLot.credits_remaining == 0,
                ),
            )
            .order_by(
                models.CreditLot.is_active.desc(),
                *_fifo_order(),
            )
            .limit(1)
            .with_for_update()
        )
        .scalars()
        .first()
    )
    if lot is None:
        logger.warning(
            "No credit lot available for refund; dropping refund",
            extra={"user_id": user_id, "credits": amount},
        )
        return 0
    lot.credits_remaining += amount
    lot.is_active = True
    uow.db.flush()
    return amount


def grant_credits(
    uow: UnitOfWork,
    *,
    user_id: int,
    credits: int,
    purchase_type: models.PurchaseType,
    expiration_days: int | None = None,
    package: models.Package | None = None,
    payment: models.Payment | None = None,
    now: datetime | None = None,
) -> models.CreditLot:
    if credits <= 0:
        raise ValueError("credits must be positive")
    now = now or utc_now()
    expires_at = now + timedelta(days=expiration_days) if expiration_days else None
    lot = models.CreditLot(
        user_id=user_id,
        package_id=package.id if package else None,
        payment_id=payment.id if payment else None,
        purchase_type=purchase_type,
        credits_remaining=credits,
        credits_total=credits,
        purchased_at=now,
        expires_at=expires_at,
        is_active=True,
    )
    uow.db.add(lot)
    uow.db.flush()
    return lot


def expire_lots(uow: UnitOfWork, now: datetime | None = None) -> list[models.CreditLot]:
    now = now or utc_now()
    expired = list(
        uow.db.execute(
            select(models.CreditLot).where(
                models.CreditLot.is_active.is_(True),
                models.CreditLot.expires_at.is_not(None),
                models.CreditLot.expires_at <= now,
                models.CreditLot.credits_remaining > 0,
            )
        )
        .scalars()
        .all()
    )
    for lot in expired:
        lot.is_active = False
        uow.db.add(
            models.AuditLog(
                actor_type=models.ActorType.system,
                action="credits_expired",
                payload={
                    "lot_id": lot.id,
                    "user_id": lot.user_id,
                    "credits_expired": lot.credits_remaining,
                    "expires_at": lot.expires_at.isoformat() if lot.expires_at else None,
                },
            )
        )
    if expired:
        logger.info("Deactivated %d expired credit lots", len(expired))
    return expired


__all__ = [
    "CreditSummary",
    "active_lots",
    "available_credits",
    "credit_summary",
    "deduct",
    "expire_lots",
    "grant_credits",
    "refund",
]
