"""Seed the development database with a demo therapy practice."""

from app.backend.src.db import get_engine, session_scope
from app.backend.src.models.base import Base
from app.backend.src.services.seed import seed_demo_practice


def main() -> None:
    """Create tables (if needed) and ensure the demo practice exists."""

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    with session_scope() as session:
        result = seed_demo_practice(session)

        print("✅ Development data ready!")
        status = "created" if result.organization_created else "unchanged"
        print(
            f"Organization ({status}): {result.organization.name} "
            f"[id={result.organization.id}]"
        )
        print(f"Service types added: {result.service_types_created}")
        print(f"Clients added: {result.clients_created}")
        print()
        print(f"Send 'X-Organization-Id: {result.organization.id}' with API requests.")


if __name__ == "__main__":
    main()
