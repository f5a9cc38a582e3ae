"""Client model."""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class PaymentMethod(str, enum.Enum):
    """How a client pays for sessions."""

    PRIVATE_PAY = "private_pay"
    SELF_DIRECTED = "self_directed"
    GROUP_HOME = "group_home"
    SCHOLARSHIP = "scholarship"
    VENMO = "venmo"


class Client(Base):
    """Represents a person receiving services."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(
            PaymentMethod,
            native_enum=False,
            length=32,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=PaymentMethod.PRIVATE_PAY,
    )
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="clients"
    )

    @property
    def is_scholarship_payer(self) -> bool:
        return self.payment_method == PaymentMethod.SCHOLARSHIP


__all__ = ["Client", "PaymentMethod"]
