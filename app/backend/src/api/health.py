"""Health and metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.backend.src.core.config import get_settings

from ..db import get_session_dependency

router = APIRouter(tags=["health"])


@router.get("/health/live")
def liveness() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health/ready")
def readiness(session: Session = Depends(get_session_dependency)) -> dict[str, str]:
    """Report readiness once the database answers.

    The payment provider is optional, so its state is informational only.
    """

    session.execute(text("SELECT 1"))
    return {
        "status": "ready",
        "database": session.get_bind().dialect.name,
        "payment_provider": (
            "configured" if get_settings().payment_provider_configured else "disabled"
        ),
    }


@router.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics for the billing counters."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
