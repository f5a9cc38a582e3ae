"""Notification service stubs."""

from __future__ import annotations

import structlog

from app.backend.src.models import Contractor, TherapySession

LOGGER = structlog.get_logger(__name__)


def send_email(recipient: str, subject: str, body: str) -> None:
    """Log that an email would have been sent."""

    LOGGER.info("email_dispatched", recipient=recipient, subject=subject, body=body)


def notify_session_rejected(
    contractor: Contractor | None, session: TherapySession, reason: str
) -> bool:
    """Tell the contractor their session was sent back. Never raises."""

    if contractor is None or not contractor.email:
        return False
    try:
        send_email(
            contractor.email,
            f"Session on {session.date.isoformat()} needs changes",
            f"Your session was returned to draft: {reason}",
        )
    except Exception as exc:  # pragma: no cover - best effort
        LOGGER.warning(
            "session_rejection_notification_failed",
            session_id=session.id,
            error=str(exc),
        )
        return False
    return True


__all__ = ["notify_session_rejected", "send_email"]
