"""Invoice models.

Invoices are a tagged union stored in one table: ``SessionInvoice`` bills a
single session for one client, ``BatchInvoice`` aggregates a client's
sessions for one calendar month through its line items.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .client import PaymentMethod


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    PAID = "paid"


class InvoiceType(str, enum.Enum):
    SINGLE = "single"
    BATCH = "batch"


class Invoice(Base):
    """Columns shared by every invoice variant."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"), nullable=False, index=True
    )
    invoice_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    practice_cut: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    contractor_pay: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(
            InvoiceStatus,
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        Enum(
            PaymentMethod,
            native_enum=False,
            length=32,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=True,
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    provider_invoice_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True
    )
    payment_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    client: Mapped["Client"] = relationship("Client")

    __mapper_args__ = {"polymorphic_on": "invoice_type"}

    @property
    def is_frozen(self) -> bool:
        """Sent and paid invoices must not be altered by reconciliation."""

        return self.status != InvoiceStatus.PENDING


class SessionInvoice(Invoice):
    """Invoice for one client's share of a single session."""

    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.id"), nullable=True, index=True
    )

    session: Mapped["TherapySession"] = relationship("TherapySession")

    __mapper_args__ = {"polymorphic_identity": InvoiceType.SINGLE.value}


class BatchInvoice(Invoice):
    """Monthly statement aggregating one client's sessions."""

    billing_period: Mapped[str] = mapped_column(String(7), nullable=True)

    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceLineItem.session_date",
    )

    __mapper_args__ = {"polymorphic_identity": InvoiceType.BATCH.value}


Index(
    "uq_invoices_batch_period",
    Invoice.__table__.c.organization_id,
    Invoice.__table__.c.client_id,
    Invoice.__table__.c.billing_period,
    unique=True,
    sqlite_where=text("invoice_type = 'batch'"),
    postgresql_where=text("invoice_type = 'batch'"),
)

Index(
    "uq_invoices_session_client",
    Invoice.__table__.c.session_id,
    Invoice.__table__.c.client_id,
    unique=True,
    sqlite_where=text("invoice_type = 'single'"),
    postgresql_where=text("invoice_type = 'single'"),
)


__all__ = [
    "BatchInvoice",
    "Invoice",
    "InvoiceStatus",
    "InvoiceType",
    "SessionInvoice",
]
