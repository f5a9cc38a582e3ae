"""Batch invoice generation schemas."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.backend.src.services.outcomes import ErrorCode


class BatchInvoiceRequest(BaseModel):
    client_id: int
    billing_period: str = Field(description="Calendar month formatted as YYYY-MM")


class BatchInvoiceCreatedRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: int
    client_id: int
    billing_period: str
    amount: Decimal
    practice_cut: Decimal
    contractor_pay: Decimal
    rent_amount: Decimal
    line_item_count: int


class GroupFailureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    client_id: int
    billing_period: str
    code: ErrorCode
    message: str


class BatchRunSummaryRead(BaseModel):
    """Result of invoicing every unbilled group of one organization."""

    model_config = ConfigDict(from_attributes=True)

    organization_id: int
    created: list[BatchInvoiceCreatedRead]
    failures: list[GroupFailureRead]


class SweepSummaryRead(BaseModel):
    """Result of one scheduled batch sweep."""

    model_config = ConfigDict(from_attributes=True)

    run_date: date
    invoices_created: int
    groups_failed: int
    organizations: list[BatchRunSummaryRead]
    errors: list[str]
