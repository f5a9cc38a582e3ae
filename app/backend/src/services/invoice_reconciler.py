"""Keeps invoices consistent with the sessions they bill.

The reconciler is the only code path (besides the batch generator) that
writes invoice money columns. It creates single-session invoices when a
session is submitted and unwinds both invoice variants when a session is
rejected, cancelled or deleted.
"""

from __future__ import annotations

from datetime import date, timedelta

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.models import (
    BatchInvoice,
    InvoiceLineItem,
    InvoiceStatus,
    Organization,
    SessionInvoice,
    TherapySession,
)
from app.backend.src.services.metrics import reconciliation_issues_total
from app.backend.src.services.outcomes import (
    ErrorCode,
    ReconciliationIssue,
    ReconciliationReport,
)
from app.backend.src.services.pricing import PricingResult, round2

LOGGER = structlog.get_logger(__name__)


def compute_due_date(organization: Organization | None, today: date | None = None) -> date | None:
    """Return the invoice due date implied by the organization's settings."""

    if organization is None or organization.invoice_due_days is None:
        return None
    return (today or date.today()) + timedelta(days=organization.invoice_due_days)


def create_session_invoices(
    session: Session,
    therapy_session: TherapySession,
    pricing: PricingResult,
    client_ids: list[int],
    *,
    due_date: date | None = None,
) -> list[SessionInvoice]:
    """Create one pending single-session invoice per billed client."""

    attendees = {attendee.client_id: attendee for attendee in therapy_session.attendees}
    invoices: list[SessionInvoice] = []
    for client_id in client_ids:
        client = attendees[client_id].client
        invoice = SessionInvoice(
            organization_id=therapy_session.organization_id,
            client_id=client_id,
            session_id=therapy_session.id,
            status=InvoiceStatus.PENDING,
            payment_method=client.payment_method,
            due_date=due_date,
            **pricing.as_snapshot(),
        )
        session.add(invoice)
        invoices.append(invoice)
    session.flush()
    LOGGER.info(
        "session_invoices_created",
        session_id=therapy_session.id,
        invoice_ids=[invoice.id for invoice in invoices],
    )
    return invoices


def _record_issue(report: ReconciliationReport, issue: ReconciliationIssue) -> None:
    report.issues.append(issue)
    reconciliation_issues_total.labels(code=issue.code.value).inc()


def delete_session_invoices(
    session: Session,
    session_id: int,
    report: ReconciliationReport | None = None,
) -> ReconciliationReport:
    """Delete pending single-session invoices for ``session_id``.

    Sent or paid invoices are left untouched and reported as frozen; the
    remaining invoices are still processed.
    """

    report = report or ReconciliationReport(session_id=session_id)
    invoices = (
        session.query(SessionInvoice)
        .filter(SessionInvoice.session_id == session_id)
        .order_by(SessionInvoice.id.asc())
        .all()
    )

    for invoice in invoices:
        invoice_id = invoice.id
        if invoice.is_frozen:
            LOGGER.warning(
                "session_invoice_frozen",
                session_id=session_id,
                invoice_id=invoice_id,
                status=invoice.status.value,
            )
            _record_issue(
                report,
                ReconciliationIssue(
                    invoice_id=invoice_id,
                    code=ErrorCode.INVOICE_FROZEN,
                    message=f"Invoice is already {invoice.status.value}",
                ),
            )
            continue

        try:
            with session.begin_nested():
                session.delete(invoice)
        except SQLAlchemyError as exc:
            LOGGER.error(
                "session_invoice_delete_failed",
                session_id=session_id,
                invoice_id=invoice_id,
                error=str(exc),
            )
            _record_issue(
                report,
                ReconciliationIssue(
                    invoice_id=invoice_id,
                    code=ErrorCode.CLEANUP_FAILED,
                    message="Invoice could not be deleted",
                ),
            )
            continue

        report.deleted_invoice_ids.append(invoice_id)

    return report


def detach_session_from_batch_invoices(
    session: Session,
    session_id: int,
    report: ReconciliationReport | None = None,
) -> ReconciliationReport:
    """Remove a session's line items from every pending batch invoice.

    A batch invoice left without line items is deleted; otherwise the removed
    item's money snapshot is subtracted from the invoice totals so they keep
    matching the sum of the remaining items.
    """

    report = report or ReconciliationReport(session_id=session_id)
    items = (
        session.query(InvoiceLineItem)
        .filter(InvoiceLineItem.session_id == session_id)
        .order_by(InvoiceLineItem.id.asc())
        .all()
    )

    for item in items:
        item_id = item.id
        invoice = session.get(BatchInvoice, item.invoice_id)
        if invoice is None:
            continue
        invoice_id = invoice.id
        if invoice.is_frozen:
            LOGGER.info(
                "batch_invoice_frozen_skipped",
                session_id=session_id,
                invoice_id=invoice_id,
                status=invoice.status.value,
            )
            report.skipped_frozen_invoice_ids.append(invoice_id)
            continue

        removed = (item.amount, item.practice_cut, item.contractor_pay, item.rent_amount)
        try:
            with session.begin_nested():
                session.delete(item)
                session.flush()
                remaining = (
                    session.query(func.count(InvoiceLineItem.id))
                    .filter(InvoiceLineItem.invoice_id == invoice_id)
                    .scalar()
                )
                if remaining == 0:
                    session.expire(invoice, ["line_items"])
                    session.delete(invoice)
                else:
                    invoice.amount = round2(invoice.amount - removed[0])
                    invoice.practice_cut = round2(invoice.practice_cut - removed[1])
                    invoice.contractor_pay = round2(invoice.contractor_pay - removed[2])
                    invoice.rent_amount = round2(invoice.rent_amount - removed[3])
        except SQLAlchemyError as exc:
            LOGGER.error(
                "batch_line_item_detach_failed",
                session_id=session_id,
                invoice_id=invoice_id,
                line_item_id=item_id,
                error=str(exc),
            )
            _record_issue(
                report,
                ReconciliationIssue(
                    invoice_id=invoice_id,
                    line_item_id=item_id,
                    code=ErrorCode.CLEANUP_FAILED,
                    message="Line item could not be removed from batch invoice",
                ),
            )
            continue

        report.detached_line_item_ids.append(item_id)
        if remaining == 0:
            report.deleted_batch_invoice_ids.append(invoice_id)
            LOGGER.info("batch_invoice_emptied", session_id=session_id, invoice_id=invoice_id)
        else:
            session.expire(invoice, ["line_items"])
            report.updated_batch_invoice_ids.append(invoice_id)
            LOGGER.info(
                "batch_invoice_recomputed",
                session_id=session_id,
                invoice_id=invoice_id,
                remaining_items=remaining,
                amount=str(invoice.amount),
            )

    return report


def release_session_invoices(session: Session, session_id: int) -> ReconciliationReport:
    """Unwind every invoice linkage of a session before it leaves the billed states."""

    report = ReconciliationReport(session_id=session_id)
    delete_session_invoices(session, session_id, report)
    detach_session_from_batch_invoices(session, session_id, report)
    LOGGER.info(
        "session_invoices_released",
        session_id=session_id,
        deleted_invoices=report.deleted_invoice_ids,
        detached_line_items=report.detached_line_item_ids,
        issues=len(report.issues),
    )
    return report


__all__ = [
    "compute_due_date",
    "create_session_invoices",
    "delete_session_invoices",
    "detach_session_from_batch_invoices",
    "release_session_invoices",
]
