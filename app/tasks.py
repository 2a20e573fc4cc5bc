"""Celery tasks for the reconciler and webhook retries."""

import logging

from app.celery_app import celery_app
from app.config import settings
from app.db import SessionLocal
from app.services.document_store import get_document_store
from app.services.sync import DocumentSync
from app.services.webhooks import WebhookService

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.reconcile_documents")
def reconcile_documents(batch_size: int | None = None) -> dict:
    """Push flagged users to Firestore, oldest request first."""
    session = SessionLocal()
    try:
        results = DocumentSync(session, get_document_store()).reconcile(
            batch_size or settings.sync_batch_size
        )
    finally:
        session.close()
    synced = sum(1 for r in results if r.synced)
    return {"processed": len(results), "synced": synced, "failed": len(results) - synced}


@celery_app.task(name="app.tasks.retry_failed_webhooks")
def retry_failed_webhooks(limit: int = 50) -> dict:
    session = SessionLocal()
    try:
        outcomes = WebhookService(session, get_document_store()).retry_failed(limit)
    finally:
        session.close()
    summary: dict[str, int] = {}
    for outcome in outcomes:
        summary[outcome.status.value] = summary.get(outcome.status.value, 0) + 1
    if outcomes:
        logger.info("Retried %d failed webhooks: %s", len(outcomes), summary)
    return summary
