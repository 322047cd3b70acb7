from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core import security
from ..core.exceptions import ValidationError
from ..db import models
from ..db.unit_of_work import UnitOfWork
from . import credit_ledger

logger = logging.getLogger(__name__)


def ensure_admin_exists(session: Session, email: str, password: str) -> None:
    email = email.strip().lower()
    admin = session.query(models.User).filter_by(email=email).first()
    if admin:
        updated = False
        if not admin.password_hash or not security.verify_password(password, admin.password_hash):
            admin.password_hash = security.get_password_hash(password)
            updated = True
        if admin.role != models.UserRole.admin:
            admin.role = models.UserRole.admin
            updated = True
        if updated:
            session.commit()
            logger.info("Updated default admin user '%s'", email)
        else:
            logger.info("Admin user '%s' already exists", email)
        return

    admin = models.User(
        email=email,
        full_name="Studio Admin",
        password_hash=security.get_password_hash(password),
        role=models.UserRole.admin,
    )
    session.add(admin)
    session.commit()
    logger.info("Created default admin user '%s'", email)


def grant_credits(
    db: Session,
    admin: models.User,
    student: models.User,
    *,
    credits: int | None = None,
    expiration_days: int | None = None,
    package: models.Package | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> models.CreditLot:
    """Add a credit lot by hand, either a package's credits or a manual amount."""
    if package is not None:
        credits = credits or package.credits
        if expiration_days is None:
            expiration_days = package.expiration_days
    if not credits or credits <= 0:
        raise ValidationError("credits must be a positive integer", code="INVALID_CREDITS")
    with UnitOfWork(db) as uow:
        lot = credit_ledger.grant_credits(
            uow,
            user_id=student.id,
            credits=credits,
            purchase_type=models.PurchaseType.package if package else models.PurchaseType.admin_grant,
            expiration_days=expiration_days,
            package=package,
            now=now,
        )
        db.add(
            models.AuditLog(
                actor_type=models.ActorType.admin,
                actor_id=admin.id,
                action="credits_granted",
                payload={
                    "user_id": student.id,
                    "lot_id": lot.id,
                    "credits": credits,
                    "package_id": package.id if package else None,
                    "expiration_days": expiration_days,
                    "note": note,
                },
            )
        )
    logger.info(
        "Admin granted credits",
        extra={"admin_id": admin.id, "user_id": student.id, "credits": credits},
    )
    return lot
