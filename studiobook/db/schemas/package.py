from pydantic import BaseModel, Field


class PackageBase(BaseModel):
    name: str
    description: str | None = None
    credits: int = Field(gt=0)
    price: float = Field(ge=0)
    expiration_days: int | None = Field(default=None, gt=0)
    checkout_url: str | None = None
    is_active: bool = True


class PackageCreate(PackageBase):
    pass


class PackageUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    credits: int | None = Field(default=None, gt=0)
    price: float | None = Field(default=None, ge=0)
    expiration_days: int | None = Field(default=None, gt=0)
    checkout_url: str | None = None
    is_active: bool | None = None


class Package(PackageBase):
    id: int

    class Config:
        from_attributes = True
