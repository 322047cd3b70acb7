from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

from ..config import Settings, get_settings
from ..db.models import NotificationType
from . import events

_CANCELLATION_LABELS = {
    "on_time": "Cancelled in time. Your credit has been returned.",
    "late": "Late cancellation. The credit for this class was not refunded.",
    "no_show": "Marked as a no-show. The credit for this class was not refunded.",
    "class_cancelled": "The studio cancelled this class.",
}


@dataclass(frozen=True, slots=True)
class EmailMessage:
    recipient: str
    subject: str
    html: str
    notification_type: NotificationType
    user_id: int | None = None
    booking_id: int | None = None


def format_class_time(starts_at: datetime, settings: Settings | None = None) -> tuple[str, str]:
    settings = settings or get_settings()
    local_dt = starts_at.astimezone(ZoneInfo(settings.timezone))
    return local_dt.strftime("%A, %B %d, %Y"), local_dt.strftime("%I:%M %p").lstrip("0")


def _layout(settings: Settings, heading: str, body: str) -> str:
    location = (
        f"<p style=\"color:#6b7280\">{escape(settings.studio_location)}</p>"
        if settings.studio_location
        else ""
    )
    return (
        "<div style=\"font-family:Arial,sans-serif;max-width:560px;margin:0 auto\">"
        f"<h2>{escape(heading)}</h2>"
        f"{body}"
        f"<p><a href=\"{escape(settings.app_url)}\">{escape(settings.studio_name)}</a></p>"
        f"{location}"
        "</div>"
    )


def _class_line(class_name: str, starts_at: datetime, settings: Settings) -> str:
    day, time = format_class_time(starts_at, settings)
    return f"<p><strong>{escape(class_name)}</strong><br>{day} at {time}</p>"


def booking_confirmation(event: events.BookingCreated, settings: Settings) -> EmailMessage:
    day, _ = format_class_time(event.class_starts_at, settings)
    credits = (
        "This class is free, no credits were used."
        if event.credits_used == 0
        else f"Credits used: {event.credits_used}"
    )
    body = (
        f"<p>Hi {escape(event.student_name)}, your spot is confirmed.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"<p>Instructor: {escape(event.instructor_name)}</p>"
        f"<p>{credits}</p>"
        f"<p style=\"color:#6b7280\">{escape(event.cancellation_policy)}</p>"
    )
    return EmailMessage(
        recipient=event.student_email,
        subject=f"Class Confirmed - {event.class_name} on {day}",
        html=_layout(settings, "Booking confirmed", body),
        notification_type=NotificationType.booking_confirmation,
        user_id=event.student_id,
        booking_id=event.booking_id,
    )


def instructor_booking(event: events.BookingCreated, settings: Settings) -> EmailMessage | None:
    if not event.instructor_email:
        return None
    body = (
        f"<p>{escape(event.student_name)} booked your class.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"<p>Booked: {event.booked_seats} / {event.capacity}</p>"
    )
    return EmailMessage(
        recipient=event.instructor_email,
        subject=f"New booking - {event.class_name}",
        html=_layout(settings, "New booking", body),
        notification_type=NotificationType.instructor_booking,
        booking_id=event.booking_id,
    )


def admin_booking(event: events.BookingCreated, settings: Settings) -> EmailMessage | None:
    if not settings.admin_notification_email:
        return None
    body = (
        f"<p>{escape(event.student_name)} ({escape(event.student_email)}) booked a class.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"<p>Instructor: {escape(event.instructor_name)}<br>"
        f"Credits used: {event.credits_used}<br>"
        f"Booking #{event.booking_id}</p>"
    )
    return EmailMessage(
        recipient=settings.admin_notification_email,
        subject=f"New booking: {event.student_name} - {event.class_name}",
        html=_layout(settings, "New booking", body),
        notification_type=NotificationType.admin_booking,
        booking_id=event.booking_id,
    )


def cancellation(event: events.BookingCancelled, settings: Settings) -> EmailMessage:
    outcome = _CANCELLATION_LABELS.get(event.cancellation_type, "")
    refund = (
        f"<p>Credits refunded: {event.credits_refunded}</p>" if event.credits_refunded else ""
    )
    body = (
        f"<p>Hi {escape(event.student_name)}, your booking was cancelled.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"<p>{outcome}</p>"
        f"{refund}"
    )
    return EmailMessage(
        recipient=event.student_email,
        subject=f"Booking Cancelled - {event.class_name}",
        html=_layout(settings, "Booking cancelled", body),
        notification_type=NotificationType.cancellation,
        user_id=event.student_id,
        booking_id=event.booking_id,
    )


def instructor_cancellation(
    event: events.BookingCancelled, settings: Settings
) -> EmailMessage | None:
    if not event.instructor_email:
        return None
    body = (
        f"<p>{escape(event.student_name)} cancelled their booking.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
    )
    return EmailMessage(
        recipient=event.instructor_email,
        subject=f"Cancellation - {event.class_name}",
        html=_layout(settings, "Booking cancelled", body),
        notification_type=NotificationType.instructor_booking,
        booking_id=event.booking_id,
    )


def waitlist_available(event: events.WaitlistSeatOpen, settings: Settings) -> EmailMessage:
    spots = "A spot has" if event.spots_available == 1 else f"{event.spots_available} spots have"
    body = (
        f"<p>Hi {escape(event.student_name)}, good news: {spots} opened up.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"<p>You are #{event.position} on the waitlist. Spots are first come, first served, "
        "so book soon to claim yours.</p>"
        f"<p><a href=\"{escape(settings.app_url)}/student\">Book now</a></p>"
    )
    return EmailMessage(
        recipient=event.student_email,
        subject=f"Spot Available - {event.class_name}",
        html=_layout(settings, "A spot opened up", body),
        notification_type=NotificationType.waitlist_available,
        user_id=event.student_id,
    )


def class_cancelled(event: events.ClassCancelled, settings: Settings) -> EmailMessage:
    refund = (
        f"<p>{event.credits_refunded} credit(s) have been returned to your account.</p>"
        if event.credits_refunded
        else ""
    )
    body = (
        f"<p>Hi {escape(event.student_name)}, unfortunately this class has been cancelled.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"{refund}"
    )
    return EmailMessage(
        recipient=event.student_email,
        subject=f"Class Cancelled - {event.class_name}",
        html=_layout(settings, "Class cancelled", body),
        notification_type=NotificationType.class_cancelled,
        user_id=event.student_id,
        booking_id=event.booking_id,
    )


def class_reminder(event: events.ClassReminder, settings: Settings) -> EmailMessage:
    _, time = format_class_time(event.class_starts_at, settings)
    body = (
        f"<p>Hi {escape(event.student_name)}, this is a reminder about your upcoming class.</p>"
        f"{_class_line(event.class_name, event.class_starts_at, settings)}"
        f"<p>Instructor: {escape(event.instructor_name)}</p>"
    )
    return EmailMessage(
        recipient=event.student_email,
        subject=f"Reminder: {event.class_name} at {time}",
        html=_layout(settings, "Class reminder", body),
        notification_type=NotificationType.class_reminder,
        user_id=event.student_id,
        booking_id=event.booking_id,
    )


_RENDERERS = {
    events.BookingCreated: (booking_confirmation, instructor_booking, admin_booking),
    events.BookingCancelled: (cancellation, instructor_cancellation),
    events.WaitlistSeatOpen: (waitlist_available,),
    events.ClassCancelled: (class_cancelled,),
    events.ClassReminder: (class_reminder,),
}


def render(event: object, settings: Settings | None = None) -> list[EmailMessage]:
    """Build every email an event produces."""
    settings = settings or get_settings()
    renderers = _RENDERERS.get(type(event))
    if renderers is None:
        raise TypeError(f"Unsupported event: {type(event).__name__}")
    messages = [renderer(event, settings) for renderer in renderers]
    return [message for message in messages if message is not None]
