"""Session lifecycle actions and their invoice side effects.

``draft -> submitted -> approved`` is the happy path. Rejection sends a
session back to ``draft`` with a reason, cancellation is terminal, and
``no_show`` is a status-only label. Every action that takes a session out of
the billed states unwinds its invoices first; if that cleanup fails the
status write is skipped so the action can be retried.
"""

from __future__ import annotations

from datetime import date

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.backend.src.models import (
    Client,
    Contractor,
    ContractorRate,
    Organization,
    ServiceType,
    SessionAttendee,
    SessionStatus,
    TherapySession,
)
from app.backend.src.services import invoice_reconciler
from app.backend.src.services.metrics import session_transitions_total
from app.backend.src.services.notifications import notify_session_rejected
from app.backend.src.services.outcomes import (
    BulkApproveSummary,
    ErrorCode,
    Failure,
    SessionFailure,
    SessionTransition,
)
from app.backend.src.services.payment_provider import (
    PaymentProvider,
    auto_send_session_invoices,
)
from app.backend.src.services.pricing import (
    ZERO,
    ContractorOverrides,
    PayerContext,
    calculate_session_pricing,
    validate_minimum_attendees,
)

LOGGER = structlog.get_logger(__name__)

ALLOWED_SOURCE_STATUSES: dict[str, frozenset[SessionStatus]] = {
    "submit": frozenset({SessionStatus.DRAFT}),
    "approve": frozenset({SessionStatus.SUBMITTED}),
    "reject": frozenset({SessionStatus.SUBMITTED, SessionStatus.APPROVED}),
    "cancel": frozenset({SessionStatus.SUBMITTED, SessionStatus.APPROVED}),
    "no_show": frozenset({SessionStatus.SUBMITTED, SessionStatus.APPROVED}),
}


def is_batch_billed(client: Client, service_type: ServiceType) -> bool:
    """Return True when the client's share of a session goes on a monthly statement."""

    return client.is_scholarship_payer or service_type.is_scholarship_eligible


def load_contractor_overrides(
    session: Session, contractor: Contractor | None, service_type_id: int
) -> ContractorOverrides | None:
    """Resolve negotiated pay and bonus for a contractor on one service type."""

    if contractor is None:
        return None
    rate = (
        session.query(ContractorRate)
        .filter(
            ContractorRate.contractor_id == contractor.id,
            ContractorRate.service_type_id == service_type_id,
        )
        .one_or_none()
    )
    custom_pay = rate.contractor_pay if rate is not None else None
    if custom_pay is None and not contractor.pay_increase:
        return None
    return ContractorOverrides(
        custom_contractor_pay=custom_pay,
        pay_increase=contractor.pay_increase or ZERO,
    )


def _load_session(
    session: Session, organization_id: int, session_id: int
) -> TherapySession | None:
    return (
        session.query(TherapySession)
        .options(
            selectinload(TherapySession.attendees).selectinload(SessionAttendee.client),
            selectinload(TherapySession.service_type),
            selectinload(TherapySession.contractor),
        )
        .filter(
            TherapySession.id == session_id,
            TherapySession.organization_id == organization_id,
        )
        .one_or_none()
    )


def _fail(action: str, failure: Failure, session_id: int | None = None) -> Failure:
    session_transitions_total.labels(action=action, outcome=failure.code.value).inc()
    LOGGER.info(
        "session_action_rejected",
        action=action,
        session_id=session_id,
        code=failure.code.value,
        reason=failure.message,
    )
    return failure


def _succeed(action: str, result: SessionTransition) -> SessionTransition:
    session_transitions_total.labels(action=action, outcome="success").inc()
    LOGGER.info(
        "session_action_applied",
        action=action,
        session_id=result.session_id,
        status=result.status,
        warnings=len(result.warnings),
    )
    return result


def _prepare(
    session: Session, organization_id: int, session_id: int, action: str
) -> TherapySession | Failure:
    therapy_session = _load_session(session, organization_id, session_id)
    if therapy_session is None:
        return _fail(action, Failure(ErrorCode.NOT_FOUND, "Session not found"), session_id)

    allowed = ALLOWED_SOURCE_STATUSES.get(action)
    if allowed is not None and therapy_session.status not in allowed:
        return _fail(
            action,
            Failure(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot {action.replace('_', '-')} a session that is {therapy_session.status.value}",
            ),
            session_id,
        )
    return therapy_session


def create_session(
    session: Session,
    organization_id: int,
    *,
    service_type_id: int,
    contractor_id: int,
    session_date: date,
    client_ids: list[int],
    duration_minutes: int = 30,
    group_headcount: int | None = None,
) -> SessionTransition | Failure:
    """Create a draft session with its attendees."""

    action = "create"
    if not client_ids:
        return _fail(action, Failure(ErrorCode.VALIDATION_ERROR, "At least one client is required"))
    if len(set(client_ids)) != len(client_ids):
        return _fail(action, Failure(ErrorCode.VALIDATION_ERROR, "Clients must be unique"))
    if duration_minutes <= 0:
        return _fail(action, Failure(ErrorCode.VALIDATION_ERROR, "Duration must be positive"))
    if group_headcount is not None and group_headcount < 1:
        return _fail(action, Failure(ErrorCode.VALIDATION_ERROR, "Group headcount must be positive"))

    service_type = session.get(ServiceType, service_type_id)
    if service_type is None or service_type.organization_id != organization_id:
        return _fail(action, Failure(ErrorCode.NOT_FOUND, "Service type not found"))
    contractor = session.get(Contractor, contractor_id)
    if contractor is None or contractor.organization_id != organization_id:
        return _fail(action, Failure(ErrorCode.NOT_FOUND, "Contractor not found"))
    clients = (
        session.query(Client)
        .filter(Client.id.in_(client_ids), Client.organization_id == organization_id)
        .all()
    )
    if len(clients) != len(client_ids):
        return _fail(action, Failure(ErrorCode.NOT_FOUND, "One or more clients not found"))

    therapy_session = TherapySession(
        organization_id=organization_id,
        service_type_id=service_type_id,
        contractor_id=contractor_id,
        date=session_date,
        duration_minutes=duration_minutes,
        group_headcount=group_headcount,
        status=SessionStatus.DRAFT,
    )
    session.add(therapy_session)
    session.flush()
    session.add_all(
        SessionAttendee(session_id=therapy_session.id, client_id=client_id)
        for client_id in client_ids
    )
    session.commit()
    return _succeed(
        action,
        SessionTransition(session_id=therapy_session.id, status=therapy_session.status.value),
    )


def submit_session(
    session: Session, organization_id: int, session_id: int
) -> SessionTransition | Failure:
    """Price a draft session and open single-session invoices for it.

    Clients billed through monthly statements are skipped here; the batch
    invoice generator picks their share up later.
    """

    action = "submit"
    therapy_session = _prepare(session, organization_id, session_id, action)
    if isinstance(therapy_session, Failure):
        return therapy_session

    if not therapy_session.attendees:
        return _fail(
            action,
            Failure(ErrorCode.VALIDATION_ERROR, "Session has no attendees"),
            session_id,
        )
    service_type = therapy_session.service_type
    attendee_count = therapy_session.attendee_count
    attendee_error = validate_minimum_attendees(service_type, attendee_count)
    if attendee_error:
        return _fail(action, Failure(ErrorCode.VALIDATION_ERROR, attendee_error), session_id)

    overrides = load_contractor_overrides(
        session, therapy_session.contractor, therapy_session.service_type_id
    )
    pricing = calculate_session_pricing(
        service_type,
        attendee_count,
        therapy_session.duration_minutes,
        overrides,
        PayerContext.STANDARD,
    )

    billed_client_ids: list[int] = []
    for attendee in therapy_session.attendees:
        attendee.individual_cost = pricing.total_amount
        if not is_batch_billed(attendee.client, service_type):
            billed_client_ids.append(attendee.client_id)

    organization = session.get(Organization, organization_id)
    invoices = invoice_reconciler.create_session_invoices(
        session,
        therapy_session,
        pricing,
        billed_client_ids,
        due_date=invoice_reconciler.compute_due_date(organization),
    )

    therapy_session.status = SessionStatus.SUBMITTED
    therapy_session.rejection_reason = None
    session.commit()

    return _succeed(
        action,
        SessionTransition(
            session_id=session_id,
            status=therapy_session.status.value,
            invoice_ids=tuple(invoice.id for invoice in invoices),
        ),
    )


def approve_session(
    session: Session,
    organization_id: int,
    session_id: int,
    provider: PaymentProvider | None = None,
) -> SessionTransition | Failure:
    """Approve a submitted session, then try to auto-send its invoices.

    The approval is committed before the payment provider is contacted;
    provider problems come back as warnings.
    """

    action = "approve"
    therapy_session = _prepare(session, organization_id, session_id, action)
    if isinstance(therapy_session, Failure):
        return therapy_session

    therapy_session.status = SessionStatus.APPROVED
    session.commit()

    warnings: list[str] = []
    auto_send = None
    try:
        auto_send = auto_send_session_invoices(session, therapy_session, provider)
        warnings.extend(auto_send.failed)
    except Exception as exc:
        session.rollback()
        LOGGER.error("session_auto_send_failed", session_id=session_id, error=str(exc))
        warnings.append("Invoices could not be sent automatically")

    return _succeed(
        action,
        SessionTransition(
            session_id=session_id,
            status=SessionStatus.APPROVED.value,
            warnings=tuple(warnings),
            auto_send=auto_send,
        ),
    )


def bulk_approve_sessions(
    session: Session,
    organization_id: int,
    session_ids: list[int],
    provider: PaymentProvider | None = None,
) -> BulkApproveSummary:
    """Approve each listed session that is still submitted.

    Sessions are approved one at a time, so a session in the wrong state or a
    database error only lands that session in ``failures``.
    """

    summary = BulkApproveSummary()
    for session_id in dict.fromkeys(session_ids):
        try:
            result = approve_session(session, organization_id, session_id, provider)
        except SQLAlchemyError as exc:
            session.rollback()
            LOGGER.error("session_bulk_approve_failed", session_id=session_id, error=str(exc))
            result = Failure(ErrorCode.PERSISTENCE_ERROR, "Session could not be approved")

        if isinstance(result, Failure):
            summary.failures.append(
                SessionFailure(session_id=session_id, code=result.code, message=result.message)
            )
        else:
            summary.approved.append(result)

    LOGGER.info(
        "sessions_bulk_approved",
        organization_id=organization_id,
        requested=len(session_ids),
        approved=summary.approved_count,
        failed=len(summary.failures),
        auto_sent_sessions=summary.auto_sent_sessions,
    )
    return summary


def _unwind_and_set_status(
    session: Session,
    organization_id: int,
    session_id: int,
    action: str,
    status: SessionStatus,
    reason: str | None = None,
) -> SessionTransition | Failure:
    therapy_session = _prepare(session, organization_id, session_id, action)
    if isinstance(therapy_session, Failure):
        return therapy_session

    report = invoice_reconciler.release_session_invoices(session, session_id)
    if not report.ok:
        # Keep the cleanup that did succeed; the session stays where it was.
        session.commit()
        return _fail(action, report.to_failure(), session_id)

    therapy_session.status = status
    if reason is not None:
        therapy_session.rejection_reason = reason
    session.commit()

    return _succeed(
        action,
        SessionTransition(
            session_id=session_id,
            status=status.value,
            reconciliation=report,
        ),
    )


def reject_session(
    session: Session, organization_id: int, session_id: int, reason: str
) -> SessionTransition | Failure:
    """Send a session back to draft with a reason, removing its invoices."""

    action = "reject"
    reason = (reason or "").strip()
    if not reason:
        return _fail(
            action,
            Failure(ErrorCode.VALIDATION_ERROR, "A rejection reason is required"),
            session_id,
        )

    result = _unwind_and_set_status(
        session, organization_id, session_id, action, SessionStatus.DRAFT, reason
    )
    if result.ok:
        therapy_session = session.get(TherapySession, session_id)
        notified = notify_session_rejected(therapy_session.contractor, therapy_session, reason)
        if not notified:
            LOGGER.info("session_rejection_not_notified", session_id=session_id)
    return result


def cancel_session(
    session: Session, organization_id: int, session_id: int
) -> SessionTransition | Failure:
    """Cancel a session for good after removing its invoices."""

    return _unwind_and_set_status(
        session, organization_id, session_id, "cancel", SessionStatus.CANCELLED
    )


def mark_session_no_show(
    session: Session, organization_id: int, session_id: int
) -> SessionTransition | Failure:
    """Label a session as a no-show. Its invoices stay billable."""

    action = "no_show"
    therapy_session = _prepare(session, organization_id, session_id, action)
    if isinstance(therapy_session, Failure):
        return therapy_session

    therapy_session.status = SessionStatus.NO_SHOW
    session.commit()
    return _succeed(
        action,
        SessionTransition(session_id=session_id, status=SessionStatus.NO_SHOW.value),
    )


def delete_session(
    session: Session, organization_id: int, session_id: int
) -> SessionTransition | Failure:
    """Permanently remove a session.

    Invoices and line items go first, then attendees, then the session row.
    """

    action = "delete"
    therapy_session = _prepare(session, organization_id, session_id, action)
    if isinstance(therapy_session, Failure):
        return therapy_session

    report = invoice_reconciler.release_session_invoices(session, session_id)
    if not report.ok:
        session.commit()
        return _fail(action, report.to_failure(), session_id)

    for attendee in list(therapy_session.attendees):
        session.delete(attendee)
    session.flush()
    session.expire(therapy_session, ["attendees"])
    session.delete(therapy_session)
    session.commit()

    return _succeed(
        action,
        SessionTransition(session_id=session_id, status="deleted", reconciliation=report),
    )


__all__ = [
    "approve_session",
    "bulk_approve_sessions",
    "cancel_session",
    "create_session",
    "delete_session",
    "is_batch_billed",
    "load_contractor_overrides",
    "mark_session_no_show",
    "reject_session",
    "submit_session",
]
