from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BookingStatus(str, PyEnum):
    confirmed = "confirmed"
    cancelled = "cancelled"
    late_cancel = "late_cancel"
    no_show = "no_show"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.cancelled, BookingStatus.late_cancel, BookingStatus.no_show}
)


class CancellationType(str, PyEnum):
    on_time = "on_time"
    late = "late"
    no_show = "no_show"
    class_cancelled = "class_cancelled"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_booking_confirmed_user_class",
            "user_id",
            "class_session_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        CheckConstraint("credits_used >= 0", name="ck_booking_credits_used_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    class_session_id: Mapped[int] = mapped_column(ForeignKey("class_sessions.id", ondelete="CASCADE"))
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.confirmed)
    booked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_type: Mapped[CancellationType | None] = mapped_column(Enum(CancellationType))
    credits_used: Mapped[int] = mapped_column(Integer, default=0)

    user = relationship("User")
    class_session = relationship("ClassSession", back_populates="bookings")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
