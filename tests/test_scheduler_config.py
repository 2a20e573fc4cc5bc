from __future__ import annotations

from datetime import timedelta

import pytest

from app.services import scheduler_config


@pytest.fixture
def clear_scheduler_env(monkeypatch: pytest.MonkeyPatch) -> None:
    keys = (
        "CELERY_BROKER_URL",
        "CELERY_RESULT_BACKEND",
        "CELERY_TIMEZONE",
        "CELERY_BEAT_MAX_LOOP_INTERVAL",
        "REDIS_URL",
        "SYNC_RECONCILE_INTERVAL_SECONDS",
        "WEBHOOK_RETRY_INTERVAL_SECONDS",
    )
    for key in keys:
        monkeypatch.delenv(key, raising=False)


def test_get_celery_config_defaults(clear_scheduler_env: None) -> None:
    config = scheduler_config.get_celery_config()

    assert config["broker_url"] == "redis://localhost:6379/0"
    assert config["result_backend"] == "redis://localhost:6379/1"
    assert config["beat_max_loop_interval"] == 5
    assert config["task_acks_late"] is True
    assert "timezone" not in config


def test_get_celery_config_falls_back_to_redis(
    clear_scheduler_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("REDIS_URL", "redis://shared.example:6379/5")
    config = scheduler_config.get_celery_config()

    assert config["broker_url"] == "redis://shared.example:6379/5"
    assert config["result_backend"] == "redis://shared.example:6379/5"


def test_get_celery_config_explicit_values(
    clear_scheduler_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CELERY_BROKER_URL", "redis://broker.example:6379/2")
    monkeypatch.setenv("CELERY_RESULT_BACKEND", "redis://backend.example:6379/3")
    monkeypatch.setenv("CELERY_TIMEZONE", "UTC")
    monkeypatch.setenv("CELERY_BEAT_MAX_LOOP_INTERVAL", "11")
    config = scheduler_config.get_celery_config()

    assert config["broker_url"] == "redis://broker.example:6379/2"
    assert config["result_backend"] == "redis://backend.example:6379/3"
    assert config["timezone"] == "UTC"
    assert config["beat_max_loop_interval"] == 11


def test_bad_integer_falls_back(
    clear_scheduler_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CELERY_BEAT_MAX_LOOP_INTERVAL", "soon")
    assert scheduler_config.get_celery_config()["beat_max_loop_interval"] == 5


def test_build_beat_schedule_defaults(clear_scheduler_env: None) -> None:
    schedule = scheduler_config.build_beat_schedule()

    assert schedule["reconcile_documents"] == {
        "task": "app.tasks.reconcile_documents",
        "schedule": timedelta(seconds=60),
    }
    assert schedule["retry_failed_webhooks"]["task"] == "app.tasks.retry_failed_webhooks"
    assert schedule["retry_failed_webhooks"]["schedule"] == timedelta(seconds=300)


def test_build_beat_schedule_can_disable_jobs(
    clear_scheduler_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("WEBHOOK_RETRY_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("SYNC_RECONCILE_INTERVAL_SECONDS", "15")
    schedule = scheduler_config.build_beat_schedule()

    assert set(schedule) == {"reconcile_documents"}
    assert schedule["reconcile_documents"]["schedule"] == timedelta(seconds=15)
