"""Stripe webhook receiver and the webhook inbox."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse

from app.api.deps import get_db, get_store, require_admin_token
from app.schemas.billing import WebhookAck, WebhookEventRead
from app.schemas.common import ListResponse
from app.services.document_store import DocumentStore
from app.services.stripe_gateway import InvalidWebhookPayload, stripe_gateway
from app.services.webhooks import WebhookOutcome, WebhookService, webhook_events

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhooks"])


def _ack(outcome: WebhookOutcome, *, for_stripe: bool = True) -> JSONResponse:
    body = WebhookAck(
        event_id=outcome.event_id,
        status=outcome.status.value,
        duplicate=outcome.duplicate,
        user_id=outcome.user_id,
        error=outcome.error,
    )
    # A 5xx makes Stripe redeliver the event.
    status_code = 500 if for_stripe and outcome.should_retry else 200
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
) -> JSONResponse:
    """Handle Stripe webhook; no auth required, signature verified."""
    if not stripe_gateway.is_webhook_configured():
        raise HTTPException(status_code=503, detail="Stripe webhooks not configured")

    body = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = stripe_gateway.verify_event(body, signature)
    except InvalidWebhookPayload as exc:
        logger.warning("Rejected Stripe webhook: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    # Database, Stripe and Firestore calls block; keep them off the event loop.
    outcome = await run_in_threadpool(WebhookService(db, store).handle, event)
    return _ack(outcome)


@router.get(
    "/webhook-events",
    response_model=ListResponse[WebhookEventRead],
    dependencies=[Depends(require_admin_token)],
)
def list_webhook_events(
    event_type: str | None = None,
    status: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return webhook_events.list_response(
        db, event_type, status, order_by, order_dir, limit, offset
    )


@router.get(
    "/webhook-events/{event_id}",
    response_model=WebhookEventRead,
    dependencies=[Depends(require_admin_token)],
)
def get_webhook_event(event_id: str, db: Session = Depends(get_db)):
    return webhook_events.get(db, event_id)


@router.post(
    "/webhook-events/{event_id}/replay",
    response_model=WebhookAck,
    dependencies=[Depends(require_admin_token)],
)
def replay_webhook_event(
    event_id: str,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
) -> JSONResponse:
    outcome = WebhookService(db, store).replay(event_id)
    return _ack(outcome, for_stripe=False)
