"""Therapy session and attendee models."""

from __future__ import annotations

import enum
import datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class SessionStatus(str, enum.Enum):
    """Lifecycle states of a therapy session."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses whose sessions can be folded into a batch invoice.
BILLABLE_STATUSES = (SessionStatus.SUBMITTED, SessionStatus.APPROVED)


class TherapySession(Base):
    """One billable event delivered by a contractor to one or more clients."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    service_type_id: Mapped[int] = mapped_column(
        ForeignKey("service_types.id"), nullable=False
    )
    contractor_id: Mapped[int] = mapped_column(
        ForeignKey("contractors.id"), nullable=False, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(
            SessionStatus,
            native_enum=False,
            length=20,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=SessionStatus.DRAFT,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    group_headcount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    service_type: Mapped["ServiceType"] = relationship("ServiceType")
    contractor: Mapped["Contractor"] = relationship("Contractor")
    attendees: Mapped[list["SessionAttendee"]] = relationship(
        "SessionAttendee",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAttendee.id",
    )

    @property
    def attendee_count(self) -> int:
        """Return the head count used for pricing."""

        if self.group_headcount:
            return self.group_headcount
        return max(1, len(self.attendees))


class SessionAttendee(Base):
    """Links a client to a session they attended."""

    __tablename__ = "session_attendees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.id"), nullable=False, index=True
    )
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"), nullable=False, index=True
    )
    individual_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    session: Mapped["TherapySession"] = relationship(
        "TherapySession", back_populates="attendees"
    )
    client: Mapped["Client"] = relationship("Client")

    __table_args__ = (
        UniqueConstraint("session_id", "client_id", name="uq_session_attendees_client"),
    )


__all__ = ["BILLABLE_STATUSES", "SessionAttendee", "SessionStatus", "TherapySession"]
