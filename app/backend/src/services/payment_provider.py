"""Payment-provider adapter.

Finalized invoices are pushed to an external invoicing/payment service which
later reports status changes back through a webhook. The provider only ever
sees a final dollar amount and our invoice reference.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.backend.src.core.config import get_settings
from app.backend.src.models import (
    Invoice,
    InvoiceStatus,
    Organization,
    SessionInvoice,
    TherapySession,
)
from app.backend.src.services.metrics import payment_provider_requests_total
from app.backend.src.services.outcomes import (
    AutoSendResult,
    ErrorCode,
    Failure,
    InvoiceStatusUpdated,
)

LOGGER = structlog.get_logger(__name__)


class PaymentProviderError(RuntimeError):
    """Raised when the payment provider cannot accept an invoice."""


@dataclass(frozen=True)
class ProviderInvoice:
    provider_invoice_id: str
    payment_url: str | None = None


class PaymentProvider(Protocol):
    def send_invoice(
        self,
        amount: Decimal,
        description: str,
        due_date: date | None,
        recipient_email: str,
        reference_id: str,
    ) -> ProviderInvoice: ...


class HttpPaymentProvider:
    """JSON-over-HTTP client for the payment provider's invoice API."""

    def __init__(
        self,
        base_url: str,
        api_token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_token}"},
        )

    def close(self) -> None:
        self._client.close()

    def send_invoice(
        self,
        amount: Decimal,
        description: str,
        due_date: date | None,
        recipient_email: str,
        reference_id: str,
    ) -> ProviderInvoice:
        payload = {
            "amount": f"{amount:.2f}",
            "currency": "USD",
            "description": description,
            "due_date": due_date.isoformat() if due_date else None,
            "recipient_email": recipient_email,
            "reference_id": reference_id,
        }
        try:
            response = self._client.post(
                "/invoices",
                json=payload,
                headers={"Idempotency-Key": reference_id},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PaymentProviderError(f"Payment provider rejected invoice: {exc}") from exc

        provider_invoice_id = body.get("id")
        if not provider_invoice_id:
            raise PaymentProviderError("Payment provider response missing invoice id")
        return ProviderInvoice(
            provider_invoice_id=str(provider_invoice_id),
            payment_url=body.get("payment_url"),
        )


def get_payment_provider() -> PaymentProvider | None:
    """Return the configured provider, or ``None`` when invoicing is offline."""

    settings = get_settings()
    if not settings.payment_provider_configured:
        return None
    return HttpPaymentProvider(
        settings.payment_provider_base_url or "",
        settings.payment_provider_api_token or "",
        timeout=settings.payment_provider_timeout_seconds,
    )


def _describe_session(therapy_session: TherapySession) -> str:
    service_name = therapy_session.service_type.name if therapy_session.service_type else "Session"
    return f"{service_name} on {therapy_session.date.strftime('%B %d, %Y').replace(' 0', ' ')}"


def auto_send_session_invoices(
    session: Session,
    therapy_session: TherapySession,
    provider: PaymentProvider | None,
) -> AutoSendResult:
    """Push a session's pending invoices to the payment provider.

    Never raises for provider faults; they are returned in ``failed``.
    """

    organization = session.get(Organization, therapy_session.organization_id)
    if provider is None or organization is None or not organization.auto_send_invoices_on_approve:
        return AutoSendResult()

    invoices = (
        session.query(SessionInvoice)
        .filter(
            SessionInvoice.session_id == therapy_session.id,
            SessionInvoice.status == InvoiceStatus.PENDING,
            SessionInvoice.provider_invoice_id.is_(None),
        )
        .order_by(SessionInvoice.id.asc())
        .all()
    )
    if not invoices:
        return AutoSendResult()

    description = _describe_session(therapy_session)
    attempted = sent = skipped = 0
    failed: list[str] = []
    for invoice in invoices:
        recipient = invoice.client.contact_email if invoice.client else None
        if not recipient:
            skipped += 1
            continue

        attempted += 1
        try:
            provider_invoice = provider.send_invoice(
                invoice.amount,
                description,
                invoice.due_date,
                recipient,
                reference_id=f"invoice-{invoice.id}",
            )
        except PaymentProviderError as exc:
            payment_provider_requests_total.labels(outcome="failure").inc()
            LOGGER.warning(
                "payment_provider_send_failed",
                invoice_id=invoice.id,
                session_id=therapy_session.id,
                error=str(exc),
            )
            failed.append(f"Invoice #{invoice.id}: {exc}")
            continue

        payment_provider_requests_total.labels(outcome="success").inc()
        invoice.provider_invoice_id = provider_invoice.provider_invoice_id
        invoice.payment_url = provider_invoice.payment_url
        invoice.status = InvoiceStatus.SENT
        sent += 1

    if sent:
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            LOGGER.error(
                "payment_provider_status_persist_failed",
                session_id=therapy_session.id,
                error=str(exc),
            )
            failed.append("Invoices were sent but their status could not be saved")

    LOGGER.info(
        "payment_provider_auto_send_complete",
        session_id=therapy_session.id,
        attempted=attempted,
        sent=sent,
        skipped=skipped,
        failed=len(failed),
    )
    return AutoSendResult(
        attempted=attempted, sent=sent, skipped=skipped, failed=tuple(failed)
    )


def apply_provider_status(
    session: Session,
    provider_invoice_id: str,
    new_status: str,
    *,
    paid_on: date | None = None,
) -> InvoiceStatusUpdated | Failure:
    """Apply a webhook status change reported by the payment provider."""

    try:
        status = InvoiceStatus(new_status)
    except ValueError:
        return Failure(ErrorCode.VALIDATION_ERROR, f"Unknown invoice status '{new_status}'")
    if status is InvoiceStatus.PENDING:
        return Failure(ErrorCode.VALIDATION_ERROR, "Provider cannot move an invoice back to pending")

    invoice = (
        session.query(Invoice)
        .filter(Invoice.provider_invoice_id == provider_invoice_id)
        .one_or_none()
    )
    if invoice is None:
        return Failure(ErrorCode.NOT_FOUND, "Invoice not found")
    if invoice.status is InvoiceStatus.PAID and status is not InvoiceStatus.PAID:
        return Failure(ErrorCode.INVALID_TRANSITION, "Invoice has already been paid")

    invoice.status = status
    if status is InvoiceStatus.PAID and invoice.paid_date is None:
        invoice.paid_date = paid_on or date.today()
    session.commit()
    LOGGER.info(
        "invoice_status_updated",
        invoice_id=invoice.id,
        provider_invoice_id=provider_invoice_id,
        status=status.value,
    )
    return InvoiceStatusUpdated(invoice_id=invoice.id, status=status.value)


__all__ = [
    "HttpPaymentProvider",
    "PaymentProvider",
    "PaymentProviderError",
    "ProviderInvoice",
    "apply_provider_status",
    "auto_send_session_invoices",
    "get_payment_provider",
]
