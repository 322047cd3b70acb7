"""Events collected by a unit of work and delivered after commit.

Payloads are flat so they stay valid after the session that produced them is
closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class BookingCreated:
    booking_id: int
    student_id: int
    student_email: str
    student_name: str
    class_id: int
    class_name: str
    class_starts_at: datetime
    instructor_name: str
    instructor_email: str | None
    credits_used: int
    booked_seats: int
    capacity: int
    cancellation_policy: str


@dataclass(frozen=True, slots=True)
class BookingCancelled:
    booking_id: int
    student_id: int
    student_email: str
    student_name: str
    class_id: int
    class_name: str
    class_starts_at: datetime
    instructor_name: str
    instructor_email: str | None
    cancellation_type: str
    credits_refunded: int
    penalty: str | None


@dataclass(frozen=True, slots=True)
class WaitlistSeatOpen:
    waitlist_entry_id: int
    student_id: int
    student_email: str
    student_name: str
    class_id: int
    class_name: str
    class_starts_at: datetime
    position: int
    spots_available: int


@dataclass(frozen=True, slots=True)
class ClassCancelled:
    booking_id: int
    student_id: int
    student_email: str
    student_name: str
    class_id: int
    class_name: str
    class_starts_at: datetime
    credits_refunded: int


@dataclass(frozen=True, slots=True)
class ClassReminder:
    booking_id: int
    student_id: int
    student_email: str
    student_name: str
    class_id: int
    class_name: str
    class_starts_at: datetime
    instructor_name: str


__all__ = [
    "BookingCancelled",
    "BookingCreated",
    "ClassCancelled",
    "ClassReminder",
    "WaitlistSeatOpen",
]
