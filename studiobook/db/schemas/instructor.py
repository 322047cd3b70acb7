from pydantic import BaseModel


class InstructorBase(BaseModel):
    name: str
    bio: str | None = None
    user_id: int | None = None
    is_active: bool = True


class InstructorCreate(InstructorBase):
    pass


class InstructorUpdate(BaseModel):
    name: str | None = None
    bio: str | None = None
    user_id: int | None = None
    is_active: bool | None = None


class Instructor(InstructorBase):
    id: int

    class Config:
        from_attributes = True
