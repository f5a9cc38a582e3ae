"""Request guards for organization scoping, scheduled jobs and provider callbacks."""

from __future__ import annotations

import hmac

import structlog
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.backend.src.core.config import get_settings
from app.backend.src.models import Organization

from ..db import get_session_dependency

LOGGER = structlog.get_logger(__name__)

_scheme = HTTPBearer(auto_error=False)


def _check_bearer(
    credentials: HTTPAuthorizationCredentials | None, secret: str, event: str
) -> None:
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode(), secret.encode()
    ):
        LOGGER.warning(event)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_organization_id(
    x_organization_id: int = Header(..., ge=1),
    session: Session = Depends(get_session_dependency),
) -> int:
    """Return the organization named in the ``X-Organization-Id`` header."""

    if session.get(Organization, x_organization_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )
    return x_organization_id


def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(_scheme),
) -> None:
    """Allow scheduled callers presenting ``Bearer <CRON_SECRET>``.

    Without a configured secret the check is skipped outside production and
    refused in production.
    """

    settings = get_settings()
    secret = settings.cron_secret
    if not secret:
        if settings.is_production:
            LOGGER.error("cron_secret_missing")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Cron secret is not configured",
            )
        return

    _check_bearer(credentials, secret, "cron_request_unauthorized")


def verify_payment_provider_webhook(
    credentials: HTTPAuthorizationCredentials | None = Depends(_scheme),
) -> None:
    """Allow the payment provider presenting ``Bearer <PAYMENT_PROVIDER_WEBHOOK_SECRET>``.

    Status callbacks can mark invoices paid, so the endpoint stays closed
    until a secret is configured.
    """

    secret = get_settings().payment_provider_webhook_secret
    if not secret:
        LOGGER.error("payment_provider_webhook_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment provider webhook is not configured",
        )
    _check_bearer(credentials, secret, "payment_provider_webhook_unauthorized")


__all__ = [
    "require_organization_id",
    "verify_cron_secret",
    "verify_payment_provider_webhook",
]
