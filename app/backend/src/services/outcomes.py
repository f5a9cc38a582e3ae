"""Success and failure results returned by the billing services.

Expected business conditions are reported through :class:`Failure` values
rather than exceptions; only infrastructure faults raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Literal


class ErrorCode(Enum):
    """Failure codes shared by the session and invoice services."""

    VALIDATION_ERROR = "validation-error"
    NOT_FOUND = "not-found"
    INVALID_TRANSITION = "invalid-transition"
    INVOICE_FROZEN = "invoice-frozen"
    CLEANUP_FAILED = "cleanup-failed"
    ALREADY_EXISTS = "already-exists"
    NO_ELIGIBLE_SESSIONS = "no-eligible-sessions"
    ALL_ALREADY_INVOICED = "all-already-invoiced"
    PERSISTENCE_ERROR = "persistence-error"


@dataclass(frozen=True)
class Failure:
    """Typed failure with a user-safe message."""

    code: ErrorCode
    message: str
    ok: Literal[False] = False

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True)
class ReconciliationIssue:
    """A single invoice that could not be cleaned up."""

    invoice_id: int
    code: ErrorCode
    message: str
    line_item_id: int | None = None


@dataclass
class ReconciliationReport:
    """What the invoice reconciler changed (or could not change) for a session."""

    session_id: int
    deleted_invoice_ids: list[int] = field(default_factory=list)
    detached_line_item_ids: list[int] = field(default_factory=list)
    updated_batch_invoice_ids: list[int] = field(default_factory=list)
    deleted_batch_invoice_ids: list[int] = field(default_factory=list)
    skipped_frozen_invoice_ids: list[int] = field(default_factory=list)
    issues: list[ReconciliationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def to_failure(self) -> Failure:
        """Collapse the recorded issues into one actionable failure."""

        frozen = [issue for issue in self.issues if issue.code is ErrorCode.INVOICE_FROZEN]
        if frozen:
            invoice_list = ", ".join(f"#{issue.invoice_id}" for issue in frozen)
            return Failure(
                code=ErrorCode.INVOICE_FROZEN,
                message=(
                    f"Invoice {invoice_list} has already been sent or paid. "
                    "Void it with the payment provider, then retry."
                ),
            )
        return Failure(
            code=ErrorCode.CLEANUP_FAILED,
            message="Could not remove this session from its invoices. Please retry.",
        )


@dataclass(frozen=True)
class AutoSendResult:
    """Summary of pushing a session's pending invoices to the payment provider."""

    attempted: int = 0
    sent: int = 0
    skipped: int = 0
    failed: tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionTransition:
    """Successful session lifecycle change."""

    session_id: int
    status: str
    invoice_ids: tuple[int, ...] = ()
    warnings: tuple[str, ...] = ()
    reconciliation: ReconciliationReport | None = None
    auto_send: AutoSendResult | None = None
    ok: Literal[True] = True


@dataclass(frozen=True)
class SessionFailure:
    """A session a bulk action could not apply to."""

    session_id: int
    code: ErrorCode
    message: str


@dataclass
class BulkApproveSummary:
    """Outcome of approving several sessions in one request."""

    approved: list[SessionTransition] = field(default_factory=list)
    failures: list[SessionFailure] = field(default_factory=list)
    ok: Literal[True] = True

    @property
    def approved_count(self) -> int:
        return len(self.approved)

    @property
    def auto_sent_sessions(self) -> int:
        """Sessions with at least one invoice pushed to the payment provider."""

        return sum(
            1 for item in self.approved if item.auto_send is not None and item.auto_send.sent
        )


@dataclass(frozen=True)
class BatchInvoiceCreated:
    """A newly generated batch invoice."""

    invoice_id: int
    client_id: int
    billing_period: str
    amount: Decimal
    practice_cut: Decimal
    contractor_pay: Decimal
    rent_amount: Decimal
    line_item_count: int
    ok: Literal[True] = True


@dataclass(frozen=True)
class InvoiceStatusUpdated:
    """Result of applying a payment-provider status callback."""

    invoice_id: int
    status: str
    ok: Literal[True] = True


@dataclass(frozen=True)
class GroupFailure:
    """A (client, month) group the batch generator could not invoice."""

    client_id: int
    billing_period: str
    code: ErrorCode
    message: str


@dataclass
class BatchRunSummary:
    """Outcome of generating batch invoices for every unbilled group of one organization."""

    organization_id: int
    created: list[BatchInvoiceCreated] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)
    ok: Literal[True] = True

    @property
    def group_count(self) -> int:
        return len(self.created) + len(self.failures)


@dataclass
class SweepSummary:
    """Outcome of one scheduled batch sweep across organizations."""

    run_date: date
    organizations: list[BatchRunSummary] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def invoices_created(self) -> int:
        return sum(len(run.created) for run in self.organizations)

    @property
    def groups_failed(self) -> int:
        return sum(len(run.failures) for run in self.organizations)


__all__ = [
    "AutoSendResult",
    "BatchInvoiceCreated",
    "BatchRunSummary",
    "BulkApproveSummary",
    "GroupFailure",
    "ErrorCode",
    "Failure",
    "InvoiceStatusUpdated",
    "ReconciliationIssue",
    "ReconciliationReport",
    "SessionFailure",
    "SessionTransition",
    "SweepSummary",
]
