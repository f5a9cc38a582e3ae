"""Invoice line item schema."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class InvoiceLineItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    session_id: int | None
    description: str
    session_date: date
    duration_minutes: int
    amount: Decimal
    practice_cut: Decimal
    contractor_pay: Decimal
    rent_amount: Decimal
    service_type_name: str | None
    contractor_name: str | None
