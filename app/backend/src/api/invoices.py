"""Invoice endpoints: batch generation, lookups and payment-provider callbacks."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.backend.src.core.security import (
    require_organization_id,
    verify_payment_provider_webhook,
)
from app.backend.src.models import Invoice
from app.backend.src.schemas.batch import (
    BatchInvoiceCreatedRead,
    BatchInvoiceRequest,
    BatchRunSummaryRead,
)
from app.backend.src.schemas.invoice import (
    InvoiceRead,
    InvoiceStatusUpdatedRead,
    ProviderStatusUpdate,
    serialize_invoice,
)
from app.backend.src.services.batch_invoices import (
    generate_all_unbilled_batch_invoices,
    generate_batch_invoice,
)
from app.backend.src.services.outcomes import Failure
from app.backend.src.services.payment_provider import apply_provider_status

from ..db import get_session_dependency
from .errors import failure_to_http

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post(
    "/batch",
    response_model=BatchInvoiceCreatedRead,
    status_code=status.HTTP_201_CREATED,
)
def create_batch_invoice(
    payload: BatchInvoiceRequest,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> BatchInvoiceCreatedRead:
    """Create the monthly batch invoice for one client."""

    result = generate_batch_invoice(
        session, organization_id, payload.client_id, payload.billing_period
    )
    if isinstance(result, Failure):
        raise failure_to_http(result)
    return BatchInvoiceCreatedRead.model_validate(result)


@router.post("/batch/generate-all", response_model=BatchRunSummaryRead)
def create_all_batch_invoices(
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> BatchRunSummaryRead:
    """Invoice every unbilled (client, month) group of the organization."""

    result = generate_all_unbilled_batch_invoices(session, organization_id)
    if isinstance(result, Failure):
        raise failure_to_http(result)
    return BatchRunSummaryRead.model_validate(result)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: int,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
):
    invoice = session.get(Invoice, invoice_id)
    if invoice is None or invoice.organization_id != organization_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        )
    return serialize_invoice(invoice)


@router.post(
    "/webhooks/payment-provider",
    response_model=InvoiceStatusUpdatedRead,
    dependencies=[Depends(verify_payment_provider_webhook)],
)
def payment_provider_webhook(
    payload: ProviderStatusUpdate,
    session: Session = Depends(get_session_dependency),
) -> InvoiceStatusUpdatedRead:
    """Record a status change reported by the payment provider."""

    LOGGER.info(
        "payment_provider_webhook_received",
        provider_invoice_id=payload.provider_invoice_id,
        status=payload.status,
    )
    result = apply_provider_status(
        session,
        payload.provider_invoice_id,
        payload.status,
        paid_on=payload.paid_date,
    )
    if isinstance(result, Failure):
        raise failure_to_http(result)
    return InvoiceStatusUpdatedRead.model_validate(result)
