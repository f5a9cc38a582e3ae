"""Tests for the scheduled batch invoice sweep."""

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from app.backend.src.models import BatchInvoice, Organization
from app.backend.src.services import batch_invoices
from app.backend.src.services.batch_sweep import (
    effective_batch_day,
    run_scheduled_batch_sweep,
)
from app.backend.src.services.outcomes import ErrorCode


def test_effective_batch_day_clamps_to_month_length() -> None:
    assert effective_batch_day(31, date(2026, 2, 10)) == 28
    assert effective_batch_day(31, date(2028, 2, 10)) == 29
    assert effective_batch_day(15, date(2026, 2, 10)) == 15


def test_sweep_runs_on_configured_day(db, practice, make_session) -> None:
    make_session(practice.scholarship_group, [practice.scholar], session_date=date(2026, 2, 3), submit=True)

    summary = run_scheduled_batch_sweep(db, today=date(2026, 3, 1))

    assert summary.invoices_created == 1
    assert summary.groups_failed == 0
    assert [run.organization_id for run in summary.organizations] == [practice.organization.id]
    invoice = db.query(BatchInvoice).one()
    assert invoice.billing_period == "2026-02"


def test_sweep_skips_other_days_and_disabled_organizations(db, practice, make_session) -> None:
    make_session(practice.scholarship_group, [practice.scholar], submit=True)
    disabled = Organization(name="Quiet Practice", batch_invoicing_enabled=False, batch_invoice_day=2)
    db.add(disabled)
    db.commit()

    not_today = run_scheduled_batch_sweep(db, today=date(2026, 3, 2))

    assert not_today.organizations == []
    assert db.query(BatchInvoice).count() == 0


def test_sweep_clamps_day_for_short_months(db, practice, make_session) -> None:
    practice.organization.batch_invoice_day = 31
    db.commit()
    make_session(practice.scholarship_group, [practice.scholar], session_date=date(2026, 2, 3), submit=True)

    early = run_scheduled_batch_sweep(db, today=date(2026, 2, 27))
    last_day = run_scheduled_batch_sweep(db, today=date(2026, 2, 28))

    assert early.organizations == []
    assert last_day.invoices_created == 1


def test_sweep_is_idempotent(db, practice, make_session) -> None:
    make_session(practice.scholarship_group, [practice.scholar], submit=True)

    first = run_scheduled_batch_sweep(db, today=date(2026, 4, 1))
    second = run_scheduled_batch_sweep(db, today=date(2026, 4, 1))

    assert first.invoices_created == 1
    assert second.invoices_created == 0
    assert db.query(BatchInvoice).count() == 1


def test_failing_group_does_not_block_others(db, practice, make_session, monkeypatch) -> None:
    make_session(practice.scholarship_group, [practice.scholar, practice.second_scholar], submit=True)
    original = batch_invoices.generate_batch_invoice
    scholar_id = practice.scholar.id

    def _flaky(session, organization_id, client_id, billing_period):
        if client_id == scholar_id:
            raise SQLAlchemyError("connection reset")
        return original(session, organization_id, client_id, billing_period)

    monkeypatch.setattr(batch_invoices, "generate_batch_invoice", _flaky)

    summary = run_scheduled_batch_sweep(db, today=date(2026, 4, 1))

    assert summary.invoices_created == 1
    assert summary.groups_failed == 1
    failure = summary.organizations[0].failures[0]
    assert failure.client_id == scholar_id
    assert failure.code is ErrorCode.PERSISTENCE_ERROR
