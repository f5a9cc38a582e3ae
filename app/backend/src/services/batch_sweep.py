"""Scheduled sweep that turns unbilled scholarship sessions into batch invoices."""

from __future__ import annotations

import calendar
from datetime import date

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.models import Organization
from app.backend.src.services.batch_invoices import generate_all_unbilled_batch_invoices
from app.backend.src.services.metrics import batch_sweep_duration_seconds
from app.backend.src.services.outcomes import Failure, SweepSummary

LOGGER = structlog.get_logger(__name__)


def effective_batch_day(batch_invoice_day: int, today: date) -> int:
    """Clamp the configured day to the length of ``today``'s month."""

    last_day = calendar.monthrange(today.year, today.month)[1]
    return max(1, min(batch_invoice_day or 1, last_day))


def organizations_due(session: Session, today: date) -> list[Organization]:
    organizations = (
        session.query(Organization)
        .filter(Organization.batch_invoicing_enabled.is_(True))
        .order_by(Organization.id.asc())
        .all()
    )
    return [
        organization
        for organization in organizations
        if effective_batch_day(organization.batch_invoice_day, today) == today.day
    ]


def run_scheduled_batch_sweep(session: Session, today: date | None = None) -> SweepSummary:
    """Generate batch invoices for every organization whose billing day is today.

    Re-running on the same day is harmless: groups already invoiced come back
    as ``already-exists`` or are no longer unbilled.
    """

    today = today or date.today()
    summary = SweepSummary(run_date=today)

    with batch_sweep_duration_seconds.time():
        organizations = organizations_due(session, today)
        LOGGER.info(
            "batch_sweep_started",
            run_date=today.isoformat(),
            organizations=[organization.id for organization in organizations],
        )
        for organization in organizations:
            organization_id = organization.id
            try:
                result = generate_all_unbilled_batch_invoices(session, organization_id)
            except SQLAlchemyError as exc:
                session.rollback()
                LOGGER.error(
                    "batch_sweep_organization_failed",
                    organization_id=organization_id,
                    error=str(exc),
                )
                summary.errors.append(f"Organization {organization_id}: {exc}")
                continue

            if isinstance(result, Failure):
                summary.errors.append(f"Organization {organization_id}: {result.message}")
                continue
            summary.organizations.append(result)

    LOGGER.info(
        "batch_sweep_complete",
        run_date=today.isoformat(),
        organizations=len(summary.organizations),
        invoices_created=summary.invoices_created,
        groups_failed=summary.groups_failed,
        errors=len(summary.errors),
    )
    return summary


__all__ = ["effective_batch_day", "organizations_due", "run_scheduled_batch_sweep"]
