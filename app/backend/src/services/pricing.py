"""Session pricing calculator.

Splits a session's fee between the practice, the contractor and facility
rent. Everything here is pure: the same service type and inputs always give
the same split, so stored invoice snapshots can be re-verified at any time.

Rates on a service type are quoted for a 30 minute session and scale
linearly with duration. Worked example for a group rule of $50 + $20 per
additional person at 30% commission with a $105 contractor cap:

* 4 attendees: total 110, practice 33, contractor 77 (under the cap)
* 10 attendees: total 230, uncapped contractor 161, capped to 105 with the
  practice absorbing the 56 excess (practice 125)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.backend.src.models import ServiceType

BASE_DURATION_MINUTES = 30
CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class PayerContext(str, enum.Enum):
    """Who is paying, which decides whether scholarship discounts apply."""

    STANDARD = "standard"
    SCHOLARSHIP = "scholarship"


@dataclass(frozen=True)
class ContractorOverrides:
    """Per-contractor adjustments applied on top of the service type rule."""

    custom_contractor_pay: Decimal | None = None
    pay_increase: Decimal = ZERO


@dataclass(frozen=True)
class PricingResult:
    """Money split for one session."""

    total_amount: Decimal
    practice_cut: Decimal
    contractor_pay: Decimal
    rent_amount: Decimal
    scholarship_discount: Decimal = ZERO

    def as_snapshot(self) -> dict[str, Decimal]:
        """Return the four columns stored on invoices and line items."""

        return {
            "amount": self.total_amount,
            "practice_cut": self.practice_cut,
            "contractor_pay": self.contractor_pay,
            "rent_amount": self.rent_amount,
        }


def round2(value: Decimal) -> Decimal:
    """Round a money value to cents using half-up rounding."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _bounded(value: Decimal, upper: Decimal) -> Decimal:
    return max(ZERO, min(value, upper))


def validate_minimum_attendees(service_type: ServiceType, attendee_count: int) -> str | None:
    """Return an error message when the service needs more attendees."""

    minimum = service_type.minimum_attendees or 1
    if attendee_count < minimum:
        return (
            f"{service_type.name} requires at least {minimum} attendees "
            f"(currently {attendee_count})"
        )
    return None


def calculate_session_pricing(
    service_type: ServiceType,
    attendee_count: int,
    duration_minutes: int = BASE_DURATION_MINUTES,
    overrides: ContractorOverrides | None = None,
    payer: PayerContext = PayerContext.STANDARD,
) -> PricingResult:
    """Compute the fee split for a session.

    Contractor pay is derived from the already-rounded practice cut and rent,
    so any rounding residue lands on the contractor. A negotiated contractor
    rate replaces the commission split and is not subject to the cap.
    """

    count = max(1, attendee_count)
    additional_attendees = count - 1
    multiplier = Decimal(duration_minutes) / Decimal(BASE_DURATION_MINUTES)

    base_rate = _money(service_type.base_rate)
    per_person_rate = _money(service_type.per_person_rate)
    total_amount = round2((base_rate + per_person_rate * additional_attendees) * multiplier)

    scholarship_discount = ZERO
    discount_percent = _money(service_type.scholarship_discount_percent)
    if payer is PayerContext.SCHOLARSHIP and discount_percent > 0:
        scholarship_discount = min(
            round2(total_amount * discount_percent / HUNDRED), total_amount
        )
        total_amount -= scholarship_discount

    rent_amount = _bounded(
        round2(total_amount * _money(service_type.rent_percent) / HUNDRED), total_amount
    )
    # Commission and rent together never exceed the total; rent wins.
    practice_cut = _bounded(
        round2(total_amount * _money(service_type.commission_percent) / HUNDRED),
        total_amount - rent_amount,
    )

    if overrides is not None and overrides.custom_contractor_pay is not None:
        contractor_pay = round2(_money(overrides.custom_contractor_pay) * multiplier)
        contractor_pay = max(ZERO, min(contractor_pay, total_amount - rent_amount))
        practice_cut = total_amount - contractor_pay - rent_amount
    else:
        contractor_pay = total_amount - practice_cut - rent_amount
        cap = service_type.contractor_cap
        if cap is not None and contractor_pay > _money(cap):
            excess = contractor_pay - _money(cap)
            contractor_pay = _money(cap)
            practice_cut += excess

    pay_increase = _money(overrides.pay_increase) if overrides is not None else ZERO
    if pay_increase > 0:
        bonus = min(pay_increase, practice_cut)
        contractor_pay += bonus
        practice_cut -= bonus

    return PricingResult(
        total_amount=total_amount,
        practice_cut=round2(practice_cut),
        contractor_pay=round2(contractor_pay),
        rent_amount=round2(rent_amount),
        scholarship_discount=scholarship_discount,
    )


__all__ = [
    "ContractorOverrides",
    "PayerContext",
    "PricingResult",
    "calculate_session_pricing",
    "round2",
    "validate_minimum_attendees",
]
