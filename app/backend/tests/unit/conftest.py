"""Shared fixtures for the billing unit tests."""

from __future__ import annotations

import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

sys.path.append(str(Path(__file__).resolve().parents[4]))

# Configure environment before application imports
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_billing.db")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from app.backend.src.db import get_engine, get_session
from app.backend.src.models import (
    Client,
    Contractor,
    Organization,
    PaymentMethod,
    ServiceType,
)
from app.backend.src.models.base import Base
from app.backend.src.services.session_workflow import (
    approve_session,
    create_session,
    submit_session,
)


@pytest.fixture()
def database():
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db(database):
    with get_session() as session:
        yield session


@pytest.fixture()
def practice(db) -> SimpleNamespace:
    """A practice with one contractor, three service types and three clients."""

    organization = Organization(
        name="Lakeside Therapy",
        batch_invoicing_enabled=True,
        batch_invoice_day=1,
        auto_send_invoices_on_approve=False,
        invoice_due_days=14,
    )
    db.add(organization)
    db.flush()

    contractor = Contractor(
        organization_id=organization.id,
        name="Casey Lee",
        email="casey@example.com",
        pay_increase=Decimal("0"),
    )
    group = ServiceType(
        organization_id=organization.id,
        name="Social Skills Group",
        base_rate=Decimal("50.00"),
        per_person_rate=Decimal("20.00"),
        commission_percent=Decimal("30.00"),
        contractor_cap=Decimal("105.00"),
        rent_percent=Decimal("0"),
        minimum_attendees=1,
        scholarship_discount_percent=Decimal("0"),
        is_scholarship_eligible=False,
    )
    individual = ServiceType(
        organization_id=organization.id,
        name="Individual Session",
        base_rate=Decimal("100.00"),
        per_person_rate=Decimal("0"),
        commission_percent=Decimal("30.00"),
        rent_percent=Decimal("10.00"),
        minimum_attendees=1,
        scholarship_discount_percent=Decimal("0"),
        is_scholarship_eligible=False,
    )
    scholarship_group = ServiceType(
        organization_id=organization.id,
        name="Community Group",
        base_rate=Decimal("20.00"),
        per_person_rate=Decimal("0"),
        commission_percent=Decimal("25.00"),
        rent_percent=Decimal("0"),
        minimum_attendees=1,
        scholarship_discount_percent=Decimal("0"),
        is_scholarship_eligible=True,
    )
    private = Client(
        organization_id=organization.id,
        name="Pat Private",
        payment_method=PaymentMethod.PRIVATE_PAY,
        contact_email="pat@example.com",
    )
    scholar = Client(
        organization_id=organization.id,
        name="Sky Scholar",
        payment_method=PaymentMethod.SCHOLARSHIP,
    )
    second_scholar = Client(
        organization_id=organization.id,
        name="Alex Scholar",
        payment_method=PaymentMethod.SCHOLARSHIP,
    )
    db.add_all([contractor, group, individual, scholarship_group, private, scholar, second_scholar])
    db.commit()

    return SimpleNamespace(
        organization=organization,
        contractor=contractor,
        group=group,
        individual=individual,
        scholarship_group=scholarship_group,
        private=private,
        scholar=scholar,
        second_scholar=second_scholar,
    )


@pytest.fixture()
def make_session(db, practice):
    """Return a builder that creates (and optionally submits) a session."""

    def _make(
        service_type: ServiceType,
        clients: list[Client],
        *,
        session_date: date = date(2026, 3, 5),
        duration_minutes: int = 30,
        submit: bool = False,
        approve: bool = False,
    ) -> int:
        created = create_session(
            db,
            practice.organization.id,
            service_type_id=service_type.id,
            contractor_id=practice.contractor.id,
            session_date=session_date,
            client_ids=[client.id for client in clients],
            duration_minutes=duration_minutes,
        )
        assert created.ok, created
        if submit or approve:
            submitted = submit_session(db, practice.organization.id, created.session_id)
            assert submitted.ok, submitted
        if approve:
            approved = approve_session(db, practice.organization.id, created.session_id)
            assert approved.ok, approved
        return created.session_id

    return _make
