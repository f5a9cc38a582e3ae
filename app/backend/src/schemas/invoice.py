"""Invoice schemas.

Invoices are returned as a discriminated union on ``invoice_type`` so
clients can tell single-session invoices from monthly statements.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from app.backend.src.models import BatchInvoice, Invoice, InvoiceStatus, PaymentMethod

from .line_item import InvoiceLineItemRead


class _InvoiceReadBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    client_id: int
    amount: Decimal
    practice_cut: Decimal
    contractor_pay: Decimal
    rent_amount: Decimal
    status: InvoiceStatus
    payment_method: PaymentMethod | None
    due_date: date | None
    paid_date: date | None
    provider_invoice_id: str | None
    payment_url: str | None


class SessionInvoiceRead(_InvoiceReadBase):
    invoice_type: Literal["single"] = "single"
    session_id: int | None


class BatchInvoiceRead(_InvoiceReadBase):
    invoice_type: Literal["batch"] = "batch"
    billing_period: str
    line_items: list[InvoiceLineItemRead] = []


InvoiceRead = Annotated[
    Union[SessionInvoiceRead, BatchInvoiceRead], Field(discriminator="invoice_type")
]


def serialize_invoice(invoice: Invoice) -> SessionInvoiceRead | BatchInvoiceRead:
    """Return the response model matching the invoice's variant."""

    if isinstance(invoice, BatchInvoice):
        return BatchInvoiceRead.model_validate(invoice)
    return SessionInvoiceRead.model_validate(invoice)


class ProviderStatusUpdate(BaseModel):
    """Status callback sent by the payment provider."""

    provider_invoice_id: str = Field(min_length=1)
    status: str
    paid_date: date | None = None


class InvoiceStatusUpdatedRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: int
    status: str
