"""Session lifecycle endpoints."""

from __future__ import annotations

from typing import Iterator

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.backend.src.core.security import require_organization_id
from app.backend.src.schemas.session import (
    BulkApproveRead,
    BulkApproveRequest,
    SessionCreate,
    SessionReject,
    SessionTransitionRead,
)
from app.backend.src.services import session_workflow
from app.backend.src.services.outcomes import Failure, SessionTransition
from app.backend.src.services.payment_provider import (
    HttpPaymentProvider,
    PaymentProvider,
    get_payment_provider,
)

from ..db import get_session_dependency
from .errors import failure_to_http

router = APIRouter(prefix="/sessions", tags=["sessions"])


def get_payment_provider_dependency() -> Iterator[PaymentProvider | None]:
    """Yield the configured payment provider for the duration of a request."""

    provider = get_payment_provider()
    try:
        yield provider
    finally:
        if isinstance(provider, HttpPaymentProvider):
            provider.close()


def _respond(result: SessionTransition | Failure) -> SessionTransitionRead:
    if isinstance(result, Failure):
        raise failure_to_http(result)
    return SessionTransitionRead.model_validate(result)


@router.post("", response_model=SessionTransitionRead, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> SessionTransitionRead:
    """Log a new draft session."""

    return _respond(
        session_workflow.create_session(
            session,
            organization_id,
            service_type_id=payload.service_type_id,
            contractor_id=payload.contractor_id,
            session_date=payload.date,
            client_ids=payload.client_ids,
            duration_minutes=payload.duration_minutes,
            group_headcount=payload.group_headcount,
        )
    )


@router.post("/{session_id}/submit", response_model=SessionTransitionRead)
def submit_session(
    session_id: int,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> SessionTransitionRead:
    return _respond(session_workflow.submit_session(session, organization_id, session_id))


@router.post("/{session_id}/approve", response_model=SessionTransitionRead)
def approve_session(
    session_id: int,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
    provider: PaymentProvider | None = Depends(get_payment_provider_dependency),
) -> SessionTransitionRead:
    """Approve a session; auto-send problems are reported as warnings."""

    return _respond(
        session_workflow.approve_session(session, organization_id, session_id, provider)
    )


@router.post("/bulk-approve", response_model=BulkApproveRead)
def bulk_approve_sessions(
    payload: BulkApproveRequest,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
    provider: PaymentProvider | None = Depends(get_payment_provider_dependency),
) -> BulkApproveRead:
    """Approve every listed session that is still submitted."""

    summary = session_workflow.bulk_approve_sessions(
        session, organization_id, payload.session_ids, provider
    )
    return BulkApproveRead.model_validate(summary)


@router.post("/{session_id}/reject", response_model=SessionTransitionRead)
def reject_session(
    session_id: int,
    payload: SessionReject,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> SessionTransitionRead:
    return _respond(
        session_workflow.reject_session(session, organization_id, session_id, payload.reason)
    )


@router.post("/{session_id}/cancel", response_model=SessionTransitionRead)
def cancel_session(
    session_id: int,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> SessionTransitionRead:
    return _respond(session_workflow.cancel_session(session, organization_id, session_id))


@router.post("/{session_id}/no-show", response_model=SessionTransitionRead)
def mark_session_no_show(
    session_id: int,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> SessionTransitionRead:
    return _respond(
        session_workflow.mark_session_no_show(session, organization_id, session_id)
    )


@router.delete("/{session_id}", response_model=SessionTransitionRead)
def delete_session(
    session_id: int,
    organization_id: int = Depends(require_organization_id),
    session: Session = Depends(get_session_dependency),
) -> SessionTransitionRead:
    """Delete a session after unwinding its invoices."""

    return _respond(session_workflow.delete_session(session, organization_id, session_id))
