"""Migration adding the partial unique indexes that keep invoicing idempotent.

One batch invoice per ``(organization, client, month)`` and one
single-session invoice per ``(session, client)``.
"""

from __future__ import annotations

from sqlalchemy import text

from .. import get_engine

INDEX_STATEMENTS = (
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_invoices_batch_period
    ON invoices (organization_id, client_id, billing_period)
    WHERE invoice_type = 'batch'
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_invoices_session_client
    ON invoices (session_id, client_id)
    WHERE invoice_type = 'single'
    """,
)


def upgrade() -> None:
    """Apply the migration."""

    engine = get_engine()
    with engine.begin() as connection:
        dialect = connection.dialect.name
        if dialect not in {"sqlite", "postgresql", "postgres"}:
            raise RuntimeError(f"Unsupported database dialect: {dialect}")

        for statement in INDEX_STATEMENTS:
            connection.execute(text(statement))


__all__ = ["upgrade"]
