"""Monthly batch invoice generation.

A batch invoice aggregates one client's billable sessions for one calendar
month into a single statement with one line item per session. The key
``(organization_id, client_id, billing_period)`` is unique, so generation is
idempotent: a second run for the same key reports ``already-exists``.
"""

from __future__ import annotations

import calendar
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.backend.src.models import (
    BILLABLE_STATUSES,
    BatchInvoice,
    Client,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Organization,
    PaymentMethod,
    ServiceType,
    SessionAttendee,
    SessionInvoice,
    TherapySession,
)
from app.backend.src.services.invoice_reconciler import compute_due_date
from app.backend.src.services.metrics import batch_invoices_total
from app.backend.src.services.outcomes import (
    BatchInvoiceCreated,
    BatchRunSummary,
    ErrorCode,
    Failure,
    GroupFailure,
)
from app.backend.src.services.pricing import (
    ZERO,
    PayerContext,
    PricingResult,
    calculate_session_pricing,
)
from app.backend.src.services.session_workflow import (
    is_batch_billed,
    load_contractor_overrides,
)

LOGGER = structlog.get_logger(__name__)

BILLING_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class UnbilledGroup:
    """Sessions of one client in one month that no invoice covers yet."""

    client_id: int
    client_name: str
    billing_period: str
    session_ids: tuple[int, ...]


@dataclass(frozen=True)
class _PricedLine:
    therapy_session: TherapySession
    pricing: PricingResult


def parse_billing_period(billing_period: str) -> tuple[date, date] | None:
    """Return the first and last day of a ``YYYY-MM`` period, or ``None``."""

    match = BILLING_PERIOD_PATTERN.match(billing_period or "")
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def billing_period_for(session_date: date) -> str:
    return session_date.strftime("%Y-%m")


def describe_line_item(therapy_session: TherapySession) -> str:
    service_name = therapy_session.service_type.name if therapy_session.service_type else "Session"
    return f"{service_name} - {therapy_session.duration_minutes} min"


def _billed_pairs(
    session: Session, organization_id: int, session_ids: list[int] | None = None
) -> set[tuple[int, int]]:
    """Return ``(session_id, client_id)`` pairs already covered by an invoice."""

    single_query = session.query(SessionInvoice.session_id, SessionInvoice.client_id).filter(
        SessionInvoice.organization_id == organization_id,
        SessionInvoice.session_id.is_not(None),
    )
    item_query = (
        session.query(InvoiceLineItem.session_id, Invoice.client_id)
        .join(Invoice, Invoice.id == InvoiceLineItem.invoice_id)
        .filter(
            Invoice.organization_id == organization_id,
            InvoiceLineItem.session_id.is_not(None),
        )
    )
    if session_ids is not None:
        single_query = single_query.filter(SessionInvoice.session_id.in_(session_ids))
        item_query = item_query.filter(InvoiceLineItem.session_id.in_(session_ids))

    pairs = {(row[0], row[1]) for row in single_query.all()}
    pairs.update((row[0], row[1]) for row in item_query.all())
    return pairs


def _insert_line_items(
    session: Session, invoice: BatchInvoice, lines: list[_PricedLine]
) -> list[InvoiceLineItem]:
    items: list[InvoiceLineItem] = []
    for line in lines:
        therapy_session = line.therapy_session
        item = InvoiceLineItem(
            invoice_id=invoice.id,
            session_id=therapy_session.id,
            description=describe_line_item(therapy_session),
            session_date=therapy_session.date,
            duration_minutes=therapy_session.duration_minutes,
            service_type_name=therapy_session.service_type.name,
            contractor_name=therapy_session.contractor.name if therapy_session.contractor else None,
            **line.pricing.as_snapshot(),
        )
        session.add(item)
        items.append(item)
    session.flush()
    return items


def _fail(failure: Failure, **context: object) -> Failure:
    batch_invoices_total.labels(outcome=failure.code.value).inc()
    LOGGER.info(
        "batch_invoice_not_created",
        code=failure.code.value,
        reason=failure.message,
        **context,
    )
    return failure


def generate_batch_invoice(
    session: Session,
    organization_id: int,
    client_id: int,
    billing_period: str,
) -> BatchInvoiceCreated | Failure:
    """Create the monthly batch invoice for one client.

    Every step that can fail for a business reason returns a
    :class:`Failure` before anything is written. If line items cannot be
    inserted the freshly created parent invoice is deleted again.
    """

    context = {
        "organization_id": organization_id,
        "client_id": client_id,
        "billing_period": billing_period,
    }
    bounds = parse_billing_period(billing_period)
    if bounds is None:
        return _fail(
            Failure(ErrorCode.VALIDATION_ERROR, "Billing period must be formatted as YYYY-MM"),
            **context,
        )
    period_start, period_end = bounds

    client = session.get(Client, client_id)
    if client is None or client.organization_id != organization_id:
        return _fail(Failure(ErrorCode.NOT_FOUND, "Client not found"), **context)

    existing = (
        session.query(BatchInvoice.id)
        .filter(
            BatchInvoice.organization_id == organization_id,
            BatchInvoice.client_id == client_id,
            BatchInvoice.billing_period == billing_period,
        )
        .first()
    )
    if existing is not None:
        return _fail(
            Failure(
                ErrorCode.ALREADY_EXISTS,
                f"A batch invoice already exists for {client.name} in {billing_period}",
            ),
            **context,
        )

    eligible = (
        session.query(TherapySession)
        .join(SessionAttendee, SessionAttendee.session_id == TherapySession.id)
        .options(
            selectinload(TherapySession.service_type),
            selectinload(TherapySession.contractor),
            selectinload(TherapySession.attendees),
        )
        .filter(
            TherapySession.organization_id == organization_id,
            SessionAttendee.client_id == client_id,
            TherapySession.status.in_(BILLABLE_STATUSES),
            TherapySession.date >= period_start,
            TherapySession.date <= period_end,
        )
        .order_by(TherapySession.date.asc(), TherapySession.id.asc())
        .all()
    )
    if not eligible:
        return _fail(
            Failure(
                ErrorCode.NO_ELIGIBLE_SESSIONS,
                f"No billable sessions for {client.name} in {billing_period}",
            ),
            **context,
        )

    billed = _billed_pairs(session, organization_id, [item.id for item in eligible])
    unbilled = [item for item in eligible if (item.id, client_id) not in billed]
    if not unbilled:
        return _fail(
            Failure(
                ErrorCode.ALL_ALREADY_INVOICED,
                f"All sessions for {client.name} in {billing_period} are already invoiced",
            ),
            **context,
        )

    lines: list[_PricedLine] = []
    for therapy_session in unbilled:
        service_type = therapy_session.service_type
        payer = (
            PayerContext.SCHOLARSHIP
            if is_batch_billed(client, service_type)
            else PayerContext.STANDARD
        )
        pricing = calculate_session_pricing(
            service_type,
            therapy_session.attendee_count,
            therapy_session.duration_minutes,
            load_contractor_overrides(
                session, therapy_session.contractor, therapy_session.service_type_id
            ),
            payer,
        )
        lines.append(_PricedLine(therapy_session=therapy_session, pricing=pricing))

    totals = {"amount": ZERO, "practice_cut": ZERO, "contractor_pay": ZERO, "rent_amount": ZERO}
    for line in lines:
        for key, value in line.pricing.as_snapshot().items():
            totals[key] += value

    organization = session.get(Organization, organization_id)
    invoice = BatchInvoice(
        organization_id=organization_id,
        client_id=client_id,
        billing_period=billing_period,
        status=InvoiceStatus.PENDING,
        payment_method=client.payment_method,
        due_date=compute_due_date(organization),
        **totals,
    )
    try:
        with session.begin_nested():
            session.add(invoice)
            session.flush()
    except IntegrityError:
        return _fail(
            Failure(
                ErrorCode.ALREADY_EXISTS,
                f"A batch invoice already exists for {client.name} in {billing_period}",
            ),
            **context,
        )

    invoice_id = invoice.id
    try:
        with session.begin_nested():
            items = _insert_line_items(session, invoice, lines)
    except SQLAlchemyError as exc:
        LOGGER.error(
            "batch_invoice_line_items_failed",
            invoice_id=invoice_id,
            error=str(exc),
            **context,
        )
        session.delete(invoice)
        session.commit()
        return _fail(
            Failure(
                ErrorCode.PERSISTENCE_ERROR,
                "Batch invoice could not be saved. No invoice was created.",
            ),
            **context,
        )

    session.commit()
    batch_invoices_total.labels(outcome="created").inc()
    LOGGER.info(
        "batch_invoice_created",
        invoice_id=invoice_id,
        amount=str(totals["amount"]),
        line_items=len(items),
        **context,
    )
    return BatchInvoiceCreated(
        invoice_id=invoice_id,
        client_id=client_id,
        billing_period=billing_period,
        amount=totals["amount"],
        practice_cut=totals["practice_cut"],
        contractor_pay=totals["contractor_pay"],
        rent_amount=totals["rent_amount"],
        line_item_count=len(items),
    )


def fetch_unbilled_batch_sessions(
    session: Session, organization_id: int
) -> list[tuple[TherapySession, Client]]:
    """Return billable ``(session, client)`` pairs that belong on a statement.

    A pair qualifies when the client pays through a scholarship or the
    service type is scholarship eligible, and no invoice covers it yet.
    """

    rows = (
        session.query(TherapySession, Client)
        .join(SessionAttendee, SessionAttendee.session_id == TherapySession.id)
        .join(Client, Client.id == SessionAttendee.client_id)
        .join(ServiceType, ServiceType.id == TherapySession.service_type_id)
        .filter(
            TherapySession.organization_id == organization_id,
            TherapySession.status.in_(BILLABLE_STATUSES),
            or_(
                Client.payment_method == PaymentMethod.SCHOLARSHIP,
                ServiceType.is_scholarship_eligible.is_(True),
            ),
        )
        .order_by(TherapySession.date.asc(), TherapySession.id.asc())
        .all()
    )
    billed = _billed_pairs(session, organization_id)
    return [
        (therapy_session, client)
        for therapy_session, client in rows
        if (therapy_session.id, client.id) not in billed
    ]


def group_unbilled_by_client_month(
    pairs: list[tuple[TherapySession, Client]],
) -> list[UnbilledGroup]:
    """Group pairs by ``(client, month)``, newest month first then by client name."""

    grouped: dict[tuple[int, str], list[int]] = defaultdict(list)
    names: dict[int, str] = {}
    for therapy_session, client in pairs:
        grouped[(client.id, billing_period_for(therapy_session.date))].append(therapy_session.id)
        names[client.id] = client.name

    groups = [
        UnbilledGroup(
            client_id=client_id,
            client_name=names[client_id],
            billing_period=period,
            session_ids=tuple(session_ids),
        )
        for (client_id, period), session_ids in grouped.items()
    ]
    groups.sort(key=lambda group: (group.client_name.lower(), group.client_id))
    groups.sort(key=lambda group: group.billing_period, reverse=True)
    return groups


def generate_all_unbilled_batch_invoices(
    session: Session, organization_id: int
) -> BatchRunSummary | Failure:
    """Run the batch generator for every unbilled group of one organization.

    A failing group is recorded and the remaining groups are still processed.
    """

    organization = session.get(Organization, organization_id)
    if organization is None:
        return Failure(ErrorCode.NOT_FOUND, "Organization not found")

    summary = BatchRunSummary(organization_id=organization_id)
    groups = group_unbilled_by_client_month(
        fetch_unbilled_batch_sessions(session, organization_id)
    )
    for group in groups:
        try:
            result = generate_batch_invoice(
                session, organization_id, group.client_id, group.billing_period
            )
        except SQLAlchemyError as exc:
            session.rollback()
            LOGGER.error(
                "batch_invoice_group_failed",
                organization_id=organization_id,
                client_id=group.client_id,
                billing_period=group.billing_period,
                error=str(exc),
            )
            summary.failures.append(
                GroupFailure(
                    client_id=group.client_id,
                    billing_period=group.billing_period,
                    code=ErrorCode.PERSISTENCE_ERROR,
                    message="Batch invoice could not be saved",
                )
            )
            continue

        if isinstance(result, Failure):
            summary.failures.append(
                GroupFailure(
                    client_id=group.client_id,
                    billing_period=group.billing_period,
                    code=result.code,
                    message=result.message,
                )
            )
        else:
            summary.created.append(result)

    LOGGER.info(
        "batch_invoice_run_complete",
        organization_id=organization_id,
        groups=summary.group_count,
        created=len(summary.created),
        failed=len(summary.failures),
    )
    return summary


__all__ = [
    "UnbilledGroup",
    "billing_period_for",
    "describe_line_item",
    "fetch_unbilled_batch_sessions",
    "generate_all_unbilled_batch_invoices",
    "generate_batch_invoice",
    "group_unbilled_by_client_month",
    "parse_billing_period",
]
