"""Public API routers exposed by the FastAPI application."""

from . import cron, health, invoices, sessions

__all__ = ["cron", "health", "invoices", "sessions"]
