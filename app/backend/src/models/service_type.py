"""Service type (pricing rule) model."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ServiceType(Base):
    """Pricing template applied to a session when it is submitted.

    Rates are expressed for a 30 minute session. Edits only affect sessions
    priced afterwards because invoices keep their own money snapshot.
    """

    __tablename__ = "service_types"
    __table_args__ = (
        CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="commission_percent_range",
        ),
        CheckConstraint("rent_percent >= 0 AND rent_percent <= 100", name="rent_percent_range"),
        CheckConstraint(
            "scholarship_discount_percent >= 0 AND scholarship_discount_percent <= 100",
            name="scholarship_discount_percent_range",
        ),
        CheckConstraint(
            "commission_percent + rent_percent <= 100", name="split_within_total"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    per_person_rate: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    commission_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    contractor_cap: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    rent_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    minimum_attendees: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    scholarship_discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    is_scholarship_eligible: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="service_types"
    )


__all__ = ["ServiceType"]
