"""Organization model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Organization(Base):
    """A practice that owns clients, contractors, sessions and invoices."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_invoicing_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Day of month the scheduled sweep builds batch invoices for this practice.
    batch_invoice_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    auto_send_invoices_on_approve: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    invoice_due_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    clients: Mapped[list["Client"]] = relationship("Client", back_populates="organization")
    service_types: Mapped[list["ServiceType"]] = relationship(
        "ServiceType", back_populates="organization"
    )


__all__ = ["Organization"]
