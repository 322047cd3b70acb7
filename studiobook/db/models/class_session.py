import datetime as dt
from enum import Enum as PyEnum
from zoneinfo import ZoneInfo
from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base
from ...config import get_settings


class ClassStatus(str, PyEnum):
    scheduled = "scheduled"
    cancelled = "cancelled"
    completed = "completed"


class ClassSession(Base):
    __tablename__ = "class_sessions"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_class_session_capacity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    class_type_id: Mapped[int] = mapped_column(ForeignKey("class_types.id"))
    instructor_id: Mapped[int] = mapped_column(ForeignKey("instructors.id"))
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    price: Mapped[float | None] = mapped_column(Numeric(10, 2))
    status: Mapped[ClassStatus] = mapped_column(Enum(ClassStatus), default=ClassStatus.scheduled)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    class_type = relationship("ClassType", back_populates="classes")
    instructor = relationship("Instructor", back_populates="classes")
    bookings = relationship("Booking", back_populates="class_session")

    @property
    def starts_at(self) -> dt.datetime:
        """Class start as an aware datetime in the studio timezone."""
        studio_tz = ZoneInfo(get_settings().timezone)
        return dt.datetime.combine(self.date, self.start_time, tzinfo=studio_tz)

    @property
    def name(self) -> str:
        return self.class_type.name if self.class_type else "Class"
