from datetime import datetime, timedelta
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select

from ..config import get_settings
from ..core.clock import utc_now
from ..db import models
from ..db.session import SessionLocal
from ..db.unit_of_work import UnitOfWork
from ..services import credit_ledger
from ..services.events import ClassReminder
from ..services.notification_service import NotificationDispatcher, build_dispatcher

logger = logging.getLogger(__name__)


def expire_credits(session_factory=SessionLocal, now: datetime | None = None) -> int:
    with session_factory() as db:
        with UnitOfWork(db) as uow:
            expired = credit_ledger.expire_lots(uow, now)
    return len(expired)


def send_class_reminders(
    session_factory=SessionLocal,
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> int:
    settings = get_settings()
    now = now or utc_now()
    horizon = now + timedelta(hours=settings.reminder_hours_before)
    dispatcher = dispatcher or build_dispatcher(settings)
    reminders: list[ClassReminder] = []
    with session_factory() as db:
        # date bounds are widened by a day so the studio timezone offset cannot drop a class
        candidates = (
            db.query(models.ClassSession)
            .filter(models.ClassSession.status == models.ClassStatus.scheduled)
            .filter(models.ClassSession.date >= (now - timedelta(days=1)).date())
            .filter(models.ClassSession.date <= (horizon + timedelta(days=1)).date())
            .all()
        )
        upcoming = [item for item in candidates if now < item.starts_at <= horizon]
        for class_session in upcoming:
            already_reminded = select(models.Notification.booking_id).where(
                models.Notification.notification_type == models.NotificationType.class_reminder,
                models.Notification.booking_id.is_not(None),
            )
            bookings = (
                db.query(models.Booking)
                .join(models.User, models.User.id == models.Booking.user_id)
                .filter(models.Booking.class_session_id == class_session.id)
                .filter(models.Booking.status == models.BookingStatus.confirmed)
                .filter(models.User.email_reminders.is_(True))
                .filter(models.Booking.id.not_in(already_reminded))
                .all()
            )
            instructor = class_session.instructor
            for booking in bookings:
                reminders.append(
                    ClassReminder(
                        booking_id=booking.id,
                        student_id=booking.user.id,
                        student_email=booking.user.email,
                        student_name=booking.user.display_name,
                        class_id=class_session.id,
                        class_name=class_session.name,
                        class_starts_at=class_session.starts_at,
                        instructor_name=instructor.name if instructor else "TBA",
                    )
                )
    if reminders:
        dispatcher.dispatch(reminders, now)
        logger.info("Queued class reminders", extra={"count": len(reminders)})
    return len(reminders)


def retry_failed_notifications(
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> int:
    dispatcher = dispatcher or build_dispatcher()
    return len(dispatcher.retry_failed(now))


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone=settings.timezone)
    scheduler.add_job(expire_credits, "interval", hours=1, id="expire_credits")
    scheduler.add_job(send_class_reminders, "interval", hours=1, id="send_class_reminders")
    scheduler.add_job(
        retry_failed_notifications, "interval", minutes=5, id="retry_failed_notifications"
    )
    return scheduler
