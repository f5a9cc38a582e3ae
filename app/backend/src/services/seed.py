"""Utilities for seeding development data."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from app.backend.src.models import (
    Client,
    Contractor,
    Organization,
    PaymentMethod,
    ServiceType,
)

DEFAULT_ORGANIZATION_NAME = "Harbor Therapy Collective"
DEFAULT_CONTRACTOR_NAME = "Jordan Reyes"
DEFAULT_CONTRACTOR_EMAIL = "jordan.reyes@harbor.example"

DEFAULT_SERVICE_TYPES = (
    {
        "name": "Individual Therapy",
        "base_rate": Decimal("75.00"),
        "per_person_rate": Decimal("0.00"),
        "commission_percent": Decimal("30.00"),
        "rent_percent": Decimal("10.00"),
    },
    {
        "name": "Social Skills Group",
        "base_rate": Decimal("50.00"),
        "per_person_rate": Decimal("20.00"),
        "commission_percent": Decimal("30.00"),
        "contractor_cap": Decimal("105.00"),
        "minimum_attendees": 2,
    },
    {
        "name": "Community Music Group",
        "base_rate": Decimal("40.00"),
        "per_person_rate": Decimal("15.00"),
        "commission_percent": Decimal("25.00"),
        "scholarship_discount_percent": Decimal("20.00"),
        "is_scholarship_eligible": True,
    },
)

DEFAULT_CLIENTS = (
    ("Avery Chen", PaymentMethod.PRIVATE_PAY, "avery.family@example.com"),
    ("Sam Okafor", PaymentMethod.SCHOLARSHIP, None),
    ("Riley Park", PaymentMethod.SELF_DIRECTED, "riley.park@example.com"),
)


@dataclass
class SeedResult:
    """Information about the seeded organization."""

    organization: Organization
    organization_created: bool
    service_types_created: int
    clients_created: int


def seed_demo_practice(
    session: Session,
    *,
    organization_name: str = DEFAULT_ORGANIZATION_NAME,
) -> SeedResult:
    """Ensure a demo practice with service types, a contractor and clients exists.

    Records are matched by name so running the seeder twice adds nothing.
    """

    organization = (
        session.query(Organization)
        .filter(Organization.name == organization_name)
        .one_or_none()
    )
    organization_created = False
    if organization is None:
        organization = Organization(
            name=organization_name,
            batch_invoicing_enabled=True,
            batch_invoice_day=1,
            invoice_due_days=30,
        )
        session.add(organization)
        session.flush()
        organization_created = True

    existing_services = {
        service.name
        for service in session.query(ServiceType).filter(
            ServiceType.organization_id == organization.id
        )
    }
    service_types_created = 0
    for values in DEFAULT_SERVICE_TYPES:
        if values["name"] in existing_services:
            continue
        session.add(ServiceType(organization_id=organization.id, **values))
        service_types_created += 1

    contractor = (
        session.query(Contractor)
        .filter(
            Contractor.organization_id == organization.id,
            Contractor.name == DEFAULT_CONTRACTOR_NAME,
        )
        .one_or_none()
    )
    if contractor is None:
        session.add(
            Contractor(
                organization_id=organization.id,
                name=DEFAULT_CONTRACTOR_NAME,
                email=DEFAULT_CONTRACTOR_EMAIL,
            )
        )

    existing_clients = {
        client.name
        for client in session.query(Client).filter(Client.organization_id == organization.id)
    }
    clients_created = 0
    for name, payment_method, email in DEFAULT_CLIENTS:
        if name in existing_clients:
            continue
        session.add(
            Client(
                organization_id=organization.id,
                name=name,
                payment_method=payment_method,
                contact_email=email,
            )
        )
        clients_created += 1

    session.flush()
    return SeedResult(
        organization=organization,
        organization_created=organization_created,
        service_types_created=service_types_created,
        clients_created=clients_created,
    )


__all__ = ["SeedResult", "seed_demo_practice"]
