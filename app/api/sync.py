from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_store
from app.config import settings
from app.schemas.sync import ReconcileRequest, ReconcileResponse, SyncResultRead
from app.services.document_store import DocumentStore
from app.services.sync import DocumentSync

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/users/{user_id}", response_model=SyncResultRead)
def sync_user(
    user_id: str,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    """Rebuild one user's Firestore document from the database."""
    return DocumentSync(db, store).sync_user(user_id)


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile(
    payload: ReconcileRequest | None = None,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    results = DocumentSync(db, store).reconcile(
        (payload.batch_size if payload else None) or settings.sync_batch_size
    )
    synced = sum(1 for r in results if r.synced)
    return ReconcileResponse(
        processed=len(results),
        synced=synced,
        failed=len(results) - synced,
        results=[SyncResultRead(**vars(r)) for r in results],
    )
