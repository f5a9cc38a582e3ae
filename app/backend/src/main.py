"""Entrypoint for the FastAPI application."""

import os
from dotenv import load_dotenv

# Local development reads backend/.env; deployed environments inject variables
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import cron, health, invoices, sessions
from .core.logging import configure_logging

API_PREFIX = "/api"


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Practice Billing", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Organization-Id"],
    )

    for module in (health, sessions, invoices, cron):
        app.include_router(module.router, prefix=API_PREFIX)

    return app


app = create_app()
