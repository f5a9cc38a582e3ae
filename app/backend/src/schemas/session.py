"""Therapy session API schemas."""

from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.backend.src.services.outcomes import ErrorCode


class SessionCreate(BaseModel):
    """Payload for logging a new draft session."""

    service_type_id: int
    contractor_id: int
    date: datetime.date
    client_ids: list[int] = Field(min_length=1)
    duration_minutes: int = Field(default=30, gt=0)
    group_headcount: int | None = Field(default=None, ge=1)


class SessionReject(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class ReconciliationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    deleted_invoice_ids: list[int]
    detached_line_item_ids: list[int]
    updated_batch_invoice_ids: list[int]
    deleted_batch_invoice_ids: list[int]
    skipped_frozen_invoice_ids: list[int]


class AutoSendRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempted: int
    sent: int
    skipped: int
    failed: list[str]


class SessionTransitionRead(BaseModel):
    """Outcome of a session lifecycle action."""

    model_config = ConfigDict(from_attributes=True)

    session_id: int
    status: str
    invoice_ids: list[int] = []
    warnings: list[str] = []
    reconciliation: ReconciliationRead | None = None
    auto_send: AutoSendRead | None = None


class BulkApproveRequest(BaseModel):
    session_ids: list[int] = Field(max_length=500)


class SessionFailureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: int
    code: ErrorCode
    message: str


class BulkApproveRead(BaseModel):
    """Outcome of approving several sessions at once."""

    model_config = ConfigDict(from_attributes=True)

    approved_count: int
    auto_sent_sessions: int
    approved: list[SessionTransitionRead]
    failures: list[SessionFailureRead]
