"""Tests for session lifecycle actions and their invoice side effects."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from app.backend.src.models import (
    Client,
    ContractorRate,
    InvoiceStatus,
    PaymentMethod,
    SessionAttendee,
    SessionInvoice,
    SessionStatus,
    TherapySession,
)
from app.backend.src.services.outcomes import ErrorCode, Failure
from app.backend.src.services.payment_provider import (
    PaymentProviderError,
    ProviderInvoice,
)
from app.backend.src.services.session_workflow import (
    approve_session,
    bulk_approve_sessions,
    cancel_session,
    create_session,
    delete_session,
    mark_session_no_show,
    reject_session,
    submit_session,
)


class RecordingProvider:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict] = []

    def send_invoice(self, amount, description, due_date, recipient_email, reference_id):
        self.calls.append(
            {
                "amount": amount,
                "description": description,
                "recipient_email": recipient_email,
                "reference_id": reference_id,
            }
        )
        if self.fail:
            raise PaymentProviderError("provider timed out")
        return ProviderInvoice(
            provider_invoice_id=f"prov-{len(self.calls)}",
            payment_url="https://pay.example/1",
        )


def _invoices_for(db, session_id: int) -> list[SessionInvoice]:
    return (
        db.query(SessionInvoice)
        .filter(SessionInvoice.session_id == session_id)
        .order_by(SessionInvoice.id)
        .all()
    )


def test_create_session_starts_in_draft(db, practice) -> None:
    result = create_session(
        db,
        practice.organization.id,
        service_type_id=practice.group.id,
        contractor_id=practice.contractor.id,
        session_date=date(2026, 3, 5),
        client_ids=[practice.private.id, practice.scholar.id],
    )

    assert result.ok
    therapy_session = db.get(TherapySession, result.session_id)
    assert therapy_session.status is SessionStatus.DRAFT
    assert [attendee.client_id for attendee in therapy_session.attendees] == [
        practice.private.id,
        practice.scholar.id,
    ]


def test_create_session_rejects_unknown_client(db, practice) -> None:
    result = create_session(
        db,
        practice.organization.id,
        service_type_id=practice.group.id,
        contractor_id=practice.contractor.id,
        session_date=date(2026, 3, 5),
        client_ids=[practice.private.id, 9999],
    )

    assert isinstance(result, Failure)
    assert result.code is ErrorCode.NOT_FOUND


def test_submit_creates_priced_invoice_for_each_direct_payer(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private])

    result = submit_session(db, practice.organization.id, session_id)

    assert result.ok
    assert result.status == "submitted"
    invoices = _invoices_for(db, session_id)
    assert [invoice.id for invoice in invoices] == list(result.invoice_ids)
    invoice = invoices[0]
    assert invoice.status is InvoiceStatus.PENDING
    assert invoice.amount == Decimal("100.00")
    assert invoice.rent_amount == Decimal("10.00")
    assert invoice.practice_cut == Decimal("30.00")
    assert invoice.contractor_pay == Decimal("60.00")
    assert invoice.due_date == date.today() + timedelta(days=14)
    attendee = db.query(SessionAttendee).filter(SessionAttendee.session_id == session_id).one()
    assert attendee.individual_cost == Decimal("100.00")


def test_submit_skips_invoices_for_batch_billed_clients(db, practice, make_session) -> None:
    session_id = make_session(practice.group, [practice.private, practice.scholar])

    result = submit_session(db, practice.organization.id, session_id)

    assert result.ok
    invoices = _invoices_for(db, session_id)
    assert [invoice.client_id for invoice in invoices] == [practice.private.id]
    assert invoices[0].amount == Decimal("70.00")


def test_submit_applies_contractor_rate_override(db, practice, make_session) -> None:
    db.add(
        ContractorRate(
            contractor_id=practice.contractor.id,
            service_type_id=practice.individual.id,
            contractor_pay=Decimal("50.00"),
        )
    )
    db.commit()
    session_id = make_session(practice.individual, [practice.private])

    submit_session(db, practice.organization.id, session_id)

    invoice = _invoices_for(db, session_id)[0]
    assert invoice.contractor_pay == Decimal("50.00")
    assert invoice.practice_cut == Decimal("40.00")
    assert invoice.rent_amount == Decimal("10.00")


def test_submit_enforces_minimum_attendees(db, practice, make_session) -> None:
    practice.group.minimum_attendees = 3
    db.commit()
    session_id = make_session(practice.group, [practice.private])

    result = submit_session(db, practice.organization.id, session_id)

    assert isinstance(result, Failure)
    assert result.code is ErrorCode.VALIDATION_ERROR
    assert db.get(TherapySession, session_id).status is SessionStatus.DRAFT
    assert _invoices_for(db, session_id) == []


def test_invalid_transitions_are_rejected(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private])

    approve_draft = approve_session(db, practice.organization.id, session_id)
    cancel_draft = cancel_session(db, practice.organization.id, session_id)
    submit_session(db, practice.organization.id, session_id)
    submit_again = submit_session(db, practice.organization.id, session_id)

    for result in (approve_draft, cancel_draft, submit_again):
        assert isinstance(result, Failure)
        assert result.code is ErrorCode.INVALID_TRANSITION


def test_actions_are_scoped_to_the_organization(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private])

    result = submit_session(db, practice.organization.id + 1, session_id)

    assert isinstance(result, Failure)
    assert result.code is ErrorCode.NOT_FOUND


def test_approve_auto_sends_pending_invoices(db, practice, make_session) -> None:
    practice.organization.auto_send_invoices_on_approve = True
    db.commit()
    session_id = make_session(practice.individual, [practice.private], submit=True)
    provider = RecordingProvider()

    result = approve_session(db, practice.organization.id, session_id, provider)

    assert result.ok
    assert result.status == "approved"
    assert result.auto_send.sent == 1
    assert result.warnings == ()
    assert provider.calls[0]["recipient_email"] == "pat@example.com"
    assert provider.calls[0]["amount"] == Decimal("100.00")
    invoice = _invoices_for(db, session_id)[0]
    assert invoice.status is InvoiceStatus.SENT
    assert invoice.provider_invoice_id == "prov-1"


def test_approve_survives_provider_failure(db, practice, make_session) -> None:
    practice.organization.auto_send_invoices_on_approve = True
    db.commit()
    session_id = make_session(practice.individual, [practice.private], submit=True)

    result = approve_session(
        db, practice.organization.id, session_id, RecordingProvider(fail=True)
    )

    assert result.ok
    assert len(result.warnings) == 1
    assert "provider timed out" in result.warnings[0]
    db.expire_all()
    assert db.get(TherapySession, session_id).status is SessionStatus.APPROVED
    assert _invoices_for(db, session_id)[0].status is InvoiceStatus.PENDING


def test_approve_without_auto_send_leaves_invoices_pending(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], submit=True)
    provider = RecordingProvider()

    result = approve_session(db, practice.organization.id, session_id, provider)

    assert result.ok
    assert provider.calls == []
    assert _invoices_for(db, session_id)[0].status is InvoiceStatus.PENDING


def test_bulk_approve_applies_to_submitted_sessions_only(db, practice, make_session) -> None:
    practice.organization.auto_send_invoices_on_approve = True
    db.commit()
    direct = make_session(practice.individual, [practice.private], submit=True)
    scholarship = make_session(practice.scholarship_group, [practice.scholar], submit=True)
    draft = make_session(practice.individual, [practice.private])
    provider = RecordingProvider()

    summary = bulk_approve_sessions(
        db, practice.organization.id, [direct, draft, scholarship, direct, 999_999], provider
    )

    assert [item.session_id for item in summary.approved] == [direct, scholarship]
    assert summary.approved_count == 2
    assert summary.auto_sent_sessions == 1
    assert [(item.session_id, item.code) for item in summary.failures] == [
        (draft, ErrorCode.INVALID_TRANSITION),
        (999_999, ErrorCode.NOT_FOUND),
    ]
    assert len(provider.calls) == 1
    db.expire_all()
    assert db.get(TherapySession, direct).status is SessionStatus.APPROVED
    assert db.get(TherapySession, scholarship).status is SessionStatus.APPROVED
    assert db.get(TherapySession, draft).status is SessionStatus.DRAFT
    assert _invoices_for(db, direct)[0].status is InvoiceStatus.SENT


def test_bulk_approve_with_no_sessions(db, practice) -> None:
    summary = bulk_approve_sessions(db, practice.organization.id, [])

    assert summary.approved == []
    assert summary.failures == []


def test_reject_returns_session_to_draft_and_removes_invoices(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], approve=True)

    result = reject_session(db, practice.organization.id, session_id, "Wrong duration")

    assert result.ok
    assert result.status == "draft"
    assert len(result.reconciliation.deleted_invoice_ids) == 1
    therapy_session = db.get(TherapySession, session_id)
    assert therapy_session.status is SessionStatus.DRAFT
    assert therapy_session.rejection_reason == "Wrong duration"
    assert _invoices_for(db, session_id) == []


def test_rejected_session_can_be_resubmitted(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], submit=True)
    reject_session(db, practice.organization.id, session_id, "Fix the date")

    result = submit_session(db, practice.organization.id, session_id)

    assert result.ok
    assert len(_invoices_for(db, session_id)) == 1
    assert db.get(TherapySession, session_id).rejection_reason is None


def test_reject_requires_reason(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], submit=True)

    result = reject_session(db, practice.organization.id, session_id, "   ")

    assert isinstance(result, Failure)
    assert result.code is ErrorCode.VALIDATION_ERROR
    assert db.get(TherapySession, session_id).status is SessionStatus.SUBMITTED
    assert len(_invoices_for(db, session_id)) == 1


def test_reject_with_paid_invoice_keeps_it_and_cleans_the_rest(db, practice, make_session) -> None:
    second_private = Client(
        organization_id=practice.organization.id,
        name="Jamie Private",
        payment_method=PaymentMethod.PRIVATE_PAY,
    )
    db.add(second_private)
    db.commit()
    session_id = make_session(practice.individual, [practice.private, second_private], submit=True)
    paid, pending = _invoices_for(db, session_id)
    paid.status = InvoiceStatus.PAID
    db.commit()
    paid_id, pending_id = paid.id, pending.id

    result = reject_session(db, practice.organization.id, session_id, "Duplicate entry")

    assert isinstance(result, Failure)
    assert result.code is ErrorCode.INVOICE_FROZEN
    assert f"#{paid_id}" in result.message
    db.expire_all()
    remaining = _invoices_for(db, session_id)
    assert [invoice.id for invoice in remaining] == [paid_id]
    assert remaining[0].status is InvoiceStatus.PAID
    assert db.get(SessionInvoice, pending_id) is None
    assert db.get(TherapySession, session_id).status is SessionStatus.SUBMITTED


def test_cancel_removes_invoices(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], submit=True)

    result = cancel_session(db, practice.organization.id, session_id)

    assert result.ok
    assert db.get(TherapySession, session_id).status is SessionStatus.CANCELLED
    assert _invoices_for(db, session_id) == []


def test_no_show_keeps_invoices(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], submit=True)

    result = mark_session_no_show(db, practice.organization.id, session_id)

    assert result.ok
    assert db.get(TherapySession, session_id).status is SessionStatus.NO_SHOW
    assert len(_invoices_for(db, session_id)) == 1


def test_delete_removes_session_attendees_and_invoices(db, practice, make_session) -> None:
    session_id = make_session(practice.individual, [practice.private], submit=True)

    result = delete_session(db, practice.organization.id, session_id)

    assert result.ok
    assert result.status == "deleted"
    db.expire_all()
    assert db.get(TherapySession, session_id) is None
    assert db.query(SessionAttendee).filter(SessionAttendee.session_id == session_id).count() == 0
    assert db.query(SessionInvoice).count() == 0


def test_delete_draft_session(db, practice, make_session) -> None:
    session_id = make_session(practice.group, [practice.private, practice.scholar])

    result = delete_session(db, practice.organization.id, session_id)

    assert result.ok
    db.expire_all()
    assert db.get(TherapySession, session_id) is None
