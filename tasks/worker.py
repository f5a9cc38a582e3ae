"""Celery application for background billing work."""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import Any

import structlog
from celery import Celery, signals
from celery.schedules import crontab
from kombu import Queue

from app.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[1]

BILLING_QUEUE = "billing"

settings = get_settings()


def _resolve_ca_cert_path(path: str | None) -> str | None:
    """Resolve the configured Redis CA certificate to an absolute path.

    redis-py needs an absolute path for ``ssl_ca_certs``. A missing file is
    logged and the default trust store is used instead.
    """

    if not path:
        return None

    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate

    if candidate.is_file():
        return str(candidate)

    LOGGER.warning(
        "redis_ca_certificate_missing",
        configured_path=path,
        resolved_path=str(candidate),
    )
    return None


def _build_ssl_options() -> dict[str, Any]:
    options: dict[str, Any] = {"ssl_cert_reqs": ssl.CERT_REQUIRED}
    resolved_cert = _resolve_ca_cert_path(settings.redis_ca_cert_path)
    if resolved_cert:
        options["ssl_ca_certs"] = resolved_cert
    return options


def build_beat_schedule(hour_utc: int) -> dict[str, dict[str, Any]]:
    """Return the periodic task table for Celery beat."""

    return {
        "daily-batch-invoice-sweep": {
            "task": "tasks.run_batch_invoice_sweep",
            "schedule": crontab(hour=hour_utc % 24, minute=0),
            "options": {"queue": BILLING_QUEUE},
        },
    }


celery = Celery(
    "practice_billing",
    broker=settings.broker_url,
    backend=settings.result_backend,
)

celery.conf.update(include=["tasks.billing_tasks"])

ssl_options = _build_ssl_options()

celery_conf: dict[str, object] = {
    "task_default_queue": BILLING_QUEUE,
    "task_queues": (Queue(BILLING_QUEUE),),
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "worker_prefetch_multiplier": 1,
    "beat_schedule": build_beat_schedule(settings.batch_sweep_hour_utc),
    "broker_transport_options": {
        "global_keyprefix": "practice-billing-broker:",
    },
    "result_backend_transport_options": {
        "global_keyprefix": "practice-billing-result:",
    },
    "broker_connection_retry_on_startup": True,
}

if settings.broker_url.startswith("rediss://"):
    celery_conf["broker_use_ssl"] = ssl_options.copy()

if settings.result_backend.startswith("rediss://"):
    celery_conf["redis_backend_use_ssl"] = ssl_options.copy()

celery.conf.update(**celery_conf)

LOGGER.info(
    "celery_bootstrap_ready",
    broker=settings.broker_url,
    backend=settings.result_backend,
    sweep_hour_utc=settings.batch_sweep_hour_utc,
)

# Registers the task definitions for workers started from any entrypoint.
from . import billing_tasks  # noqa: F401,E402  # isort: skip


@signals.worker_ready.connect
def _log_worker_configuration(sender: Any | None = None, **_: Any) -> None:
    """Emit structured worker configuration details after startup."""

    app = sender.app if sender is not None else celery
    registered_tasks = sorted(
        task_name for task_name in app.tasks.keys() if task_name.startswith("tasks.")
    )
    LOGGER.info(
        "celery_worker_configuration",
        default_queue=app.conf.task_default_queue,
        registered_tasks=registered_tasks,
        beat_entries=sorted(app.conf.beat_schedule or {}),
    )


@signals.task_postrun.connect
def _log_task_postrun(
    task_id: str | None = None,
    task: Any | None = None,
    retval: Any | None = None,
    state: str | None = None,
    **_: Any,
) -> None:
    task_name = getattr(task, "name", "") or ""
    if not task_name.startswith("tasks."):
        return
    summary = retval if isinstance(retval, dict) else {}
    LOGGER.info(
        "celery_task_postrun",
        task_id=task_id,
        task_name=task_name,
        state=state,
        invoices_created=summary.get("invoices_created"),
        groups_failed=summary.get("groups_failed"),
    )


@signals.task_failure.connect
def _log_task_failure(
    sender: Any | None = None,
    task_id: str | None = None,
    exception: BaseException | None = None,
    **_: Any,
) -> None:
    LOGGER.error(
        "celery_task_failed",
        task_id=task_id,
        task_name=getattr(sender, "name", None),
        error=str(exception),
    )


__all__ = ["build_beat_schedule", "celery"]
