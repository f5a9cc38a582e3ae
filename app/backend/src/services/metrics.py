"""Prometheus metric definitions for session billing."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

session_transitions_total = Counter(
    "session_transitions_total",
    "Session lifecycle actions by outcome.",
    labelnames=["action", "outcome"],
)

batch_invoices_total = Counter(
    "batch_invoices_total",
    "Batch invoice generation attempts by outcome.",
    labelnames=["outcome"],
)

reconciliation_issues_total = Counter(
    "reconciliation_issues_total",
    "Invoices that could not be reconciled when a session was unwound.",
    labelnames=["code"],
)

payment_provider_requests_total = Counter(
    "payment_provider_requests_total",
    "Invoices pushed to the payment provider by outcome.",
    labelnames=["outcome"],
)

batch_sweep_duration_seconds = Histogram(
    "batch_sweep_duration_seconds",
    "Duration of the scheduled batch invoice sweep in seconds.",
)

__all__ = [
    "batch_invoices_total",
    "batch_sweep_duration_seconds",
    "payment_provider_requests_total",
    "reconciliation_issues_total",
    "session_transitions_total",
]
