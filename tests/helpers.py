from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from studiobook.config import get_settings
from studiobook.core import security
from studiobook.db import models
from studiobook.db.unit_of_work import UnitOfWork
from studiobook.services import credit_ledger

NOW = datetime(2030, 3, 4, 15, 0, tzinfo=timezone.utc)


def create_user(session, email="student@example.com", role=models.UserRole.student, **fields):
    user = models.User(email=email, full_name=fields.pop("full_name", "Test Student"), role=role, **fields)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def create_class(session, starts_at, capacity=10, status=models.ClassStatus.scheduled, instructor_email=None):
    class_type = session.query(models.ClassType).filter_by(name="Mat Pilates").first()
    if class_type is None:
        class_type = models.ClassType(name="Mat Pilates", duration_minutes=50)
        session.add(class_type)
    instructor_user = None
    if instructor_email:
        instructor_user = create_user(session, instructor_email, role=models.UserRole.instructor)
    instructor = models.Instructor(name="Dana", user_id=instructor_user.id if instructor_user else None)
    session.add(instructor)
    session.flush()
    local = starts_at.astimezone(ZoneInfo(get_settings().timezone))
    class_session = models.ClassSession(
        class_type_id=class_type.id,
        instructor_id=instructor.id,
        date=local.date(),
        start_time=local.time().replace(microsecond=0),
        end_time=(local + timedelta(minutes=50)).time().replace(microsecond=0),
        capacity=capacity,
        status=status,
    )
    session.add(class_session)
    session.commit()
    session.refresh(class_session)
    return class_session


def give_credits(session, user, credits, expiration_days=None, now=NOW):
    with UnitOfWork(session) as uow:
        lot = credit_ledger.grant_credits(
            uow,
            user_id=user.id,
            credits=credits,
            purchase_type=models.PurchaseType.package,
            expiration_days=expiration_days,
            now=now,
        )
    return lot


def auth_header(user):
    token = security.create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}
