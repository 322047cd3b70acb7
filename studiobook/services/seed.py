import logging
from datetime import date, time, timedelta

from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import CANCELLATION_WINDOW_KEY, DEFAULT_CANCELLATION_WINDOW_HOURS
from ..db import models
from ..db.session import SessionLocal
from .admin import ensure_admin_exists

logger = logging.getLogger(__name__)

WEEKDAY_SCHEDULE = (time(7, 0), time(9, 30), time(18, 0))


def seed(session: Session, start: date | None = None) -> None:
    settings = get_settings()
    ensure_admin_exists(session, settings.default_admin_email, settings.default_admin_password)
    if session.get(models.Setting, CANCELLATION_WINDOW_KEY) is None:
        session.add(
            models.Setting(
                key=CANCELLATION_WINDOW_KEY,
                value=str(DEFAULT_CANCELLATION_WINDOW_HOURS),
            )
        )
    if session.query(models.ClassType).count() == 0:
        class_type = models.ClassType(
            name="Reformer Pilates",
            description="Full-body reformer class for all levels",
            duration_minutes=50,
        )
        instructor = models.Instructor(name="Studio Instructor", bio="Certified pilates instructor")
        session.add_all([class_type, instructor])
        session.flush()
        start = start or date.today() + timedelta(days=1)
        for offset in range(7):
            day = start + timedelta(days=offset)
            if day.weekday() == 6:
                continue
            for start_time in WEEKDAY_SCHEDULE:
                end_minutes = start_time.hour * 60 + start_time.minute + class_type.duration_minutes
                session.add(
                    models.ClassSession(
                        class_type_id=class_type.id,
                        instructor_id=instructor.id,
                        date=day,
                        start_time=start_time,
                        end_time=time(end_minutes // 60, end_minutes % 60),
                        capacity=settings.default_class_capacity,
                    )
                )
    if session.query(models.Package).count() == 0:
        session.add_all(
            [
                models.Package(
                    name="Single Class",
                    description="One class credit",
                    credits=1,
                    price=30,
                    expiration_days=30,
                ),
                models.Package(
                    name="10 Class Pack",
                    description="Ten class credits, valid for 90 days",
                    credits=10,
                    price=250,
                    expiration_days=90,
                ),
            ]
        )
    session.commit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    with SessionLocal() as session:
        seed(session)
        logger.info("Seed data created")
