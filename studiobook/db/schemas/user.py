from datetime import datetime
from pydantic import BaseModel, Field


class UserBase(BaseModel):
    email: str
    full_name: str | None = None
    phone: str | None = None


class UserCreate(UserBase):
    password: str = Field(min_length=8)


class UserUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    email_reminders: bool | None = None
    role: str | None = None


class User(UserBase):
    id: int
    role: str
    email_reminders: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User
