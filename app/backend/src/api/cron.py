"""Endpoints invoked by external schedulers."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.backend.src.core.security import verify_cron_secret
from app.backend.src.schemas.batch import SweepSummaryRead
from app.backend.src.services.batch_sweep import run_scheduled_batch_sweep

from ..db import get_session_dependency

router = APIRouter(
    prefix="/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.post("/batch-invoices", response_model=SweepSummaryRead)
def batch_invoice_sweep(
    run_date: date | None = Query(default=None),
    session: Session = Depends(get_session_dependency),
) -> SweepSummaryRead:
    """Run the scheduled batch invoice sweep for ``run_date`` (default: today)."""

    summary = run_scheduled_batch_sweep(session, today=run_date)
    return SweepSummaryRead.model_validate(summary)
