from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_store
from app.schemas.common import ListResponse
from app.schemas.users import UserRead, UserSyncRequest
from app.services.document_store import DocumentStore
from app.services.sync import DocumentSync
from app.services.users import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/sync", response_model=UserRead)
def sync_user_profile(
    payload: UserSyncRequest,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    user = user_service.upsert(db, payload)
    DocumentSync(db, store).sync_user(user.id)
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return user_service.get(db, user_id)


@router.get("", response_model=ListResponse[UserRead])
def list_users(
    subscription_status: str | None = None,
    needs_document_sync: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return user_service.list_response(
        db, subscription_status, needs_document_sync, order_by, order_dir, limit, offset
    )
