"""Create the billing tables and apply hand-written migrations."""

import importlib

from app.backend.src.core.config import get_settings
from app.backend.src.db import get_engine
from app.backend.src.models import *  # noqa
from app.backend.src.models.base import Base

MIGRATIONS = ("20261019_add_invoice_unique_indexes",)


def init_db():
    print(f"🚀 Connecting to {get_settings().database_url}")
    Base.metadata.create_all(bind=get_engine())
    for name in MIGRATIONS:
        importlib.import_module(f"app.backend.src.db.migrations.{name}").upgrade()
        print(f"  applied {name}")
    print("✅ Tables created successfully!")


if __name__ == "__main__":
    init_db()
