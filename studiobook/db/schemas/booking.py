import datetime as dt
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Booking(CamelModel):
    id: int
    class_id: int
    student_id: int
    status: str
    booked_at: dt.datetime | None = None
    cancelled_at: dt.datetime | None = None
    cancellation_type: str | None = None
    credits_used: int
    class_name: str | None = None
    class_date: dt.date | None = None
    start_time: dt.time | None = None

    @classmethod
    def from_model(cls, booking) -> "Booking":
        class_session = booking.class_session
        return cls(
            id=booking.id,
            class_id=booking.class_session_id,
            student_id=booking.user_id,
            status=booking.status.value,
            booked_at=booking.booked_at,
            cancelled_at=booking.cancelled_at,
            cancellation_type=booking.cancellation_type.value if booking.cancellation_type else None,
            credits_used=booking.credits_used,
            class_name=class_session.name if class_session else None,
            class_date=class_session.date if class_session else None,
            start_time=class_session.start_time if class_session else None,
        )


class BookingCreated(CamelModel):
    booking: Booking
    message: str


class CancellationDetails(CamelModel):
    cancellation_type: str
    hours_until_class: float
    cancellation_window_hours: int
    penalty: str | None = None
    credits_refunded: int
    class_date_time: dt.datetime
    cancelled_at: dt.datetime


class BookingCancelled(CamelModel):
    booking: Booking
    cancellation_details: CancellationDetails
    message: str


class BookingStats(BaseModel):
    total: int
    confirmed: int
    cancelled: int
    late_cancel: int
    no_show: int


class BookingAttendance(CamelModel):
    booking: Booking
    message: str


class ClassAttendance(CamelModel):
    class_id: int
    class_status: str
    updated_count: int
    no_shows: list[Booking]
    message: str
