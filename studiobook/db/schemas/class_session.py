import datetime as dt
from pydantic import BaseModel, Field


class ClassSessionBase(BaseModel):
    class_type_id: int
    instructor_id: int
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    capacity: int = Field(default=15, gt=0)
    price: float | None = None


class ClassSessionCreate(ClassSessionBase):
    pass


class ClassSessionUpdate(BaseModel):
    class_type_id: int | None = None
    instructor_id: int | None = None
    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    capacity: int | None = Field(default=None, gt=0)
    price: float | None = None
    status: str | None = None


class ClassSession(ClassSessionBase):
    id: int
    status: str
    name: str
    booked_seats: int = 0
    available_seats: int = 0

    class Config:
        from_attributes = True
