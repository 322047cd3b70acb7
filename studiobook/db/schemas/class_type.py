from pydantic import BaseModel, Field


class ClassTypeBase(BaseModel):
    name: str
    description: str | None = None
    duration_minutes: int = Field(default=50, gt=0)
    is_active: bool = True


class ClassTypeCreate(ClassTypeBase):
    pass


class ClassTypeUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    is_active: bool | None = None


class ClassType(ClassTypeBase):
    id: int

    class Config:
        from_attributes = True
