from celery import Celery
from celery.signals import setup_logging, worker_process_init

from app.logging import configure_logging
from app.services.scheduler_config import build_beat_schedule, get_celery_config

celery_app = Celery("inrooms_billing_sync", include=["app.tasks"])
celery_app.conf.update(get_celery_config())
celery_app.conf.beat_schedule = build_beat_schedule()


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging()


@worker_process_init.connect
def _init_worker_tracing(**kwargs) -> None:
    from app.telemetry import setup_otel

    setup_otel()
