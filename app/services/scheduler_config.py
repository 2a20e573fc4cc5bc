import logging
import os
from datetime import timedelta

logger = logging.getLogger(__name__)

RECONCILE_TASK = "app.tasks.reconcile_documents"
RETRY_WEBHOOKS_TASK = "app.tasks.retry_failed_webhooks"


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_int(name: str, default: int) -> int:
    raw = _env_value(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def get_celery_config() -> dict:
    broker = (
        _env_value("CELERY_BROKER_URL")
        or _env_value("REDIS_URL")
        or "redis://localhost:6379/0"
    )
    backend = (
        _env_value("CELERY_RESULT_BACKEND")
        or _env_value("REDIS_URL")
        or "redis://localhost:6379/1"
    )
    config = {
        "broker_url": broker,
        "result_backend": backend,
        "task_serializer": "json",
        "result_serializer": "json",
        "accept_content": ["json"],
        "task_acks_late": True,
        "worker_prefetch_multiplier": 1,
        "beat_max_loop_interval": _env_int("CELERY_BEAT_MAX_LOOP_INTERVAL", 5),
    }
    timezone = _env_value("CELERY_TIMEZONE")
    if timezone:
        config["timezone"] = timezone
    return config


def build_beat_schedule() -> dict:
    """Periodic jobs: document reconciliation and failed-webhook retries."""
    reconcile_seconds = _env_int("SYNC_RECONCILE_INTERVAL_SECONDS", 60)
    retry_seconds = _env_int("WEBHOOK_RETRY_INTERVAL_SECONDS", 300)
    schedule: dict = {}
    if reconcile_seconds > 0:
        schedule["reconcile_documents"] = {
            "task": RECONCILE_TASK,
            "schedule": timedelta(seconds=reconcile_seconds),
        }
    if retry_seconds > 0:
        schedule["retry_failed_webhooks"] = {
            "task": RETRY_WEBHOOKS_TASK,
            "schedule": timedelta(seconds=retry_seconds),
        }
    return schedule
