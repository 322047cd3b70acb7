from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class PurchaseType(str, PyEnum):
    package = "package"
    single_class = "single_class"
    admin_grant = "admin_grant"


class CreditLot(Base):
    __tablename__ = "credit_lots"
    __table_args__ = (
        CheckConstraint("credits_remaining >= 0", name="ck_credit_lot_remaining_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    package_id: Mapped[int | None] = mapped_column(ForeignKey("packages.id"))
    payment_id: Mapped[int | None] = mapped_column(ForeignKey("payments.id"))
    purchase_type: Mapped[PurchaseType] = mapped_column(Enum(PurchaseType), default=PurchaseType.package)
    credits_remaining: Mapped[int] = mapped_column(Integer, default=0)
    credits_total: Mapped[int] = mapped_column(Integer, default=0)
    purchased_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    user = relationship("User")
    package = relationship("Package")
