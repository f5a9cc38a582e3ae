"""Celery tasks for scheduled billing work."""

from __future__ import annotations

from datetime import date
from typing import Any

import structlog

from app.backend.src.db import session_scope
from app.backend.src.services.batch_sweep import run_scheduled_batch_sweep
from .worker import celery

LOGGER = structlog.get_logger(__name__)


@celery.task(name="tasks.run_batch_invoice_sweep")
def run_batch_invoice_sweep(run_date: str | None = None) -> dict[str, Any]:
    """Run the daily batch invoice sweep and return a JSON-friendly summary."""

    today = date.fromisoformat(run_date) if run_date else None
    try:
        with session_scope() as session:
            summary = run_scheduled_batch_sweep(session, today=today)
    except Exception as exc:  # pragma: no cover - logged and re-raised
        LOGGER.error("batch_sweep_task_failed", error=str(exc), run_date=run_date)
        raise

    return {
        "run_date": summary.run_date.isoformat(),
        "organizations": [run.organization_id for run in summary.organizations],
        "invoices_created": summary.invoices_created,
        "groups_failed": summary.groups_failed,
        "errors": list(summary.errors),
    }


__all__ = ["run_batch_invoice_sweep"]
