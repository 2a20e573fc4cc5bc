"""Stripe webhook dispatch with an inbox for dedupe, retries and dead letters.

Every verified event is stored in ``webhook_events`` before its handler runs.
Outcomes:

* handled: ``processed``;
* no handler for the type: ``ignored`` (acknowledged, never retried);
* permanent failure (identity or price cannot be resolved): ``dead_lettered``
  and acknowledged, waiting for an operator replay;
* transient failure: ``failed`` and reported back so Stripe retries, until
  ``webhook_max_attempts`` turns it into a dead letter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.metrics import WEBHOOK_EVENTS
from app.models.billing import WebhookEvent, WebhookEventStatus
from app.models.user import User
from app.services.common import apply_ordering, apply_pagination, from_timestamp, validate_enum
from app.services.document_store import DocumentStore
from app.services.errors import SyncError
from app.services.projector import Projector
from app.services.response import ListResponseMixin
from app.services.stripe_gateway import StripeGateway, stripe_gateway
from app.services.sync import DocumentSync

logger = logging.getLogger(__name__)

Handler = Callable[[Projector, dict[str, Any], datetime | None], User | None]

HANDLERS: dict[str, Handler] = {
    "checkout.session.completed": lambda p, obj, at: p.apply_checkout_completed(obj, at),
    "customer.created": lambda p, obj, at: p.apply_customer(obj),
    "customer.updated": lambda p, obj, at: p.apply_customer(obj),
    "customer.subscription.created": lambda p, obj, at: p.apply_subscription(obj, at),
    "customer.subscription.updated": lambda p, obj, at: p.apply_subscription(obj, at),
    "customer.subscription.deleted": lambda p, obj, at: p.apply_subscription_deleted(obj, at),
    "invoice.payment_succeeded": lambda p, obj, at: p.apply_invoice_paid(obj),
    "invoice.paid": lambda p, obj, at: p.apply_invoice_paid(obj),
    "invoice.payment_failed": lambda p, obj, at: p.apply_invoice_failed(obj),
    "payment_method.attached": lambda p, obj, at: p.apply_payment_method_attached(obj),
    "payment_method.detached": lambda p, obj, at: p.apply_payment_method_detached(obj),
}

_FINAL = (
    WebhookEventStatus.processed,
    WebhookEventStatus.ignored,
    WebhookEventStatus.dead_lettered,
)


@dataclass
class WebhookOutcome:
    event_id: str
    event_type: str
    status: WebhookEventStatus
    duplicate: bool = False
    user_id: str | None = None
    error: str | None = None

    @property
    def should_retry(self) -> bool:
        return self.status is WebhookEventStatus.failed


class WebhookService:
    def __init__(
        self,
        db: Session,
        store: DocumentStore,
        gateway: StripeGateway = stripe_gateway,
    ) -> None:
        self.db = db
        self.store = store
        self.gateway = gateway

    def handle(self, event: dict[str, Any]) -> WebhookOutcome:
        """Record a verified event and run its handler unless already final."""
        event_id = str(event["id"])
        event_type = str(event["type"])
        row = self.db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
        if row is not None and row.status in _FINAL:
            logger.info(
                "Duplicate webhook %s (%s)",
                event_id,
                row.status.value,
                extra={"event_id": event_id, "event_type": event_type},
            )
            WEBHOOK_EVENTS.labels(event_type, "duplicate").inc()
            return WebhookOutcome(event_id, event_type, row.status, duplicate=True)

        if row is None:
            row = WebhookEvent(
                provider="stripe",
                event_id=event_id,
                event_type=event_type,
                payload=event,
                status=WebhookEventStatus.pending,
                event_created_at=from_timestamp(event.get("created")),
            )
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent delivery of the same event got there first.
                self.db.rollback()
                logger.info("Webhook %s is already being processed", event_id)
                row = self.db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).one()
                return WebhookOutcome(event_id, event_type, row.status, duplicate=True)
        return self.process(row)

    def process(self, row: WebhookEvent) -> WebhookOutcome:
        event_id = row.event_id
        event_type = row.event_type
        log_extra = {"event_id": event_id, "event_type": event_type}
        handler = HANDLERS.get(event_type)
        if handler is None:
            row.mark(WebhookEventStatus.ignored)
            self.db.commit()
            logger.info("Ignoring unhandled webhook type %s", event_type, extra=log_extra)
            WEBHOOK_EVENTS.labels(event_type, "ignored").inc()
            return WebhookOutcome(event_id, event_type, WebhookEventStatus.ignored)

        payload = row.payload or {}
        obj = (payload.get("data") or {}).get("object") or {}
        created = from_timestamp(payload.get("created"))
        row_id = row.id
        attempts = (row.attempts or 0) + 1

        try:
            user = handler(Projector(self.db, self.gateway), obj, created)
            row.attempts = attempts
            row.mark(WebhookEventStatus.processed)
            self.db.commit()
        except SyncError as exc:
            status = self._record_failure(row_id, attempts, exc, permanent=not exc.retryable)
            return WebhookOutcome(event_id, event_type, status, error=exc.message)
        except SQLAlchemyError as exc:
            status = self._record_failure(row_id, attempts, exc, permanent=False)
            return WebhookOutcome(event_id, event_type, status, error=str(exc))

        user_id = user.id if user is not None else None
        logger.info("Processed webhook", extra={**log_extra, "user_id": user_id})
        WEBHOOK_EVENTS.labels(event_type, "processed").inc()

        if user is not None and user.needs_document_sync:
            DocumentSync(self.db, self.store).sync_user(user_id)
        return WebhookOutcome(
            event_id, event_type, WebhookEventStatus.processed, user_id=user_id
        )

    def _record_failure(
        self, row_id: Any, attempts: int, exc: Exception, *, permanent: bool
    ) -> WebhookEventStatus:
        self.db.rollback()
        row = self.db.get(WebhookEvent, row_id)
        message = getattr(exc, "message", None) or str(exc)
        if permanent or attempts >= settings.webhook_max_attempts:
            status = WebhookEventStatus.dead_lettered
        else:
            status = WebhookEventStatus.failed
        row.attempts = attempts
        row.mark(status, message)
        self.db.commit()
        extra = {
            "event_id": row.event_id,
            "event_type": row.event_type,
            "outcome": status.value,
        }
        if permanent:
            logger.warning("Webhook dead-lettered: %s", message, extra=extra)
        else:
            logger.error("Webhook failed (attempt %d): %s", attempts, message, exc_info=exc, extra=extra)
        WEBHOOK_EVENTS.labels(row.event_type, status.value).inc()
        return status

    def replay(self, event_id: str) -> WebhookOutcome:
        """Re-run a stored event regardless of its status."""
        row = self.db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
        if not row:
            raise HTTPException(status_code=404, detail="Webhook event not found")
        logger.info("Replaying webhook %s (was %s)", event_id, row.status.value)
        return self.process(row)

    def retry_failed(self, limit: int) -> list[WebhookOutcome]:
        rows = (
            self.db.query(WebhookEvent)
            .filter(WebhookEvent.status == WebhookEventStatus.failed)
            .order_by(WebhookEvent.created_at.asc())
            .limit(limit)
            .all()
        )
        return [self.process(row) for row in rows]


class WebhookEvents(ListResponseMixin):
    @staticmethod
    def get(db: Session, event_id: str) -> WebhookEvent:
        item = db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
        if not item:
            raise HTTPException(status_code=404, detail="Webhook event not found")
        return item

    @staticmethod
    def list(
        db: Session,
        event_type: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[WebhookEvent], int]:
        query = db.query(WebhookEvent)
        if event_type:
            query = query.filter(WebhookEvent.event_type == event_type)
        if status:
            query = query.filter(
                WebhookEvent.status == validate_enum(status, WebhookEventStatus, "status")
            )
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": WebhookEvent.created_at,
                "event_created_at": WebhookEvent.event_created_at,
            },
        )
        items = list(apply_pagination(query, limit, offset).all())
        return items, total


webhook_events = WebhookEvents()
