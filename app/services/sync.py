"""Project committed user rows into the Firestore ``users`` collection.

The relational row is the source of truth. A user flagged with
``needs_document_sync`` has its whole summary document rebuilt and merged; the
flag is cleared only when ``sync_version`` has not moved since the snapshot
was taken, so a change that lands mid-write is picked up by the next pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.metrics import DOCUMENT_SYNC
from app.models.user import User
from app.services.common import as_utc
from app.services.document_store import DocumentStore
from app.services.errors import DocumentStoreError

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    user_id: str
    synced: bool
    error: str | None = None


def build_user_document(user: User) -> dict[str, Any]:
    status = user.subscription_status
    return {
        "uid": user.id,
        "email": user.email,
        "displayName": user.name,
        "photoURL": user.photo_url,
        "emailVerified": bool(user.email_verified),
        "role": user.role.value if user.role else "user",
        "subscription": {
            "status": status.value if status else "trial",
            "plan": user.subscription_plan,
            "eventsQuota": user.events_quota or 0,
            "eventsUsed": user.events_used or 0,
            "trialEndsAt": as_utc(user.trial_ends_at),
            "currentPeriodEnd": as_utc(user.stripe_current_period_end),
        },
        "stripeCustomerId": user.stripe_customer_id,
        "stripeSubscriptionId": user.stripe_subscription_id,
        "stripeSubscriptionStatus": user.stripe_subscription_status,
        "stripeCurrentPeriodEnd": as_utc(user.stripe_current_period_end),
        "syncVersion": user.sync_version or 0,
        "updatedAt": datetime.now(UTC),
    }


class DocumentSync:
    def __init__(self, db: Session, store: DocumentStore) -> None:
        self.db = db
        self.store = store

    def sync_user(self, user_id: str) -> SyncResult:
        user = self.db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        version = user.sync_version or 0
        document = build_user_document(user)

        try:
            if self.store.get_user(user.id) is None:
                document["createdAt"] = as_utc(user.created_at) or datetime.now(UTC)
            self.store.merge_user(user.id, document)
        except DocumentStoreError as exc:
            user.document_sync_attempts = (user.document_sync_attempts or 0) + 1
            user.document_sync_error = exc.message
            # Requeue behind the other flagged users.
            user.document_sync_requested_at = datetime.now(UTC)
            self.db.commit()
            DOCUMENT_SYNC.labels("failed").inc()
            logger.warning(
                "Document sync failed for %s: %s",
                user_id,
                exc.message,
                extra={"user_id": user_id},
            )
            return SyncResult(user_id, False, exc.message)

        cleared = (
            self.db.query(User)
            .filter(User.id == user_id, User.sync_version == version)
            .update(
                {
                    User.needs_document_sync: False,
                    User.document_synced_at: datetime.now(UTC),
                    User.document_sync_attempts: 0,
                    User.document_sync_error: None,
                },
                synchronize_session="fetch",
            )
        )
        self.db.commit()
        DOCUMENT_SYNC.labels("synced").inc()
        if not cleared:
            logger.info("User %s changed during sync; left flagged", user_id)
        logger.info("Synced user document %s (v%s)", user_id, version, extra={"user_id": user_id})
        return SyncResult(user_id, True)

    def pending(self, limit: int) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.needs_document_sync.is_(True))
            .order_by(User.document_sync_requested_at.asc(), User.id.asc())
            .limit(limit)
            .all()
        )

    def reconcile(self, batch_size: int) -> list[SyncResult]:
        """Sync the oldest flagged users, one batch."""
        users = self.pending(batch_size)
        results = [self.sync_user(user.id) for user in users]
        if results:
            logger.info(
                "Reconciled %d users (%d failed)",
                len(results),
                sum(1 for r in results if not r.synced),
            )
        return results
