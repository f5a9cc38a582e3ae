"""Contractor and contractor rate models."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Contractor(Base):
    """A therapist who delivers sessions and receives a payout."""

    __tablename__ = "contractors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Per-session bonus paid out of the practice cut.
    pay_increase: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )

    rates: Mapped[list["ContractorRate"]] = relationship(
        "ContractorRate", back_populates="contractor", cascade="all, delete-orphan"
    )


class ContractorRate(Base):
    """Negotiated contractor pay for one service type, per 30 minutes."""

    __tablename__ = "contractor_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contractor_id: Mapped[int] = mapped_column(
        ForeignKey("contractors.id"), nullable=False, index=True
    )
    service_type_id: Mapped[int] = mapped_column(
        ForeignKey("service_types.id"), nullable=False
    )
    contractor_pay: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    contractor: Mapped["Contractor"] = relationship("Contractor", back_populates="rates")

    __table_args__ = (
        UniqueConstraint(
            "contractor_id", "service_type_id", name="uq_contractor_rates_service_type"
        ),
    )


__all__ = ["Contractor", "ContractorRate"]
