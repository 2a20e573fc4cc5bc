import logging

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.user import SubscriptionStatus, User, UserRole
from app.schemas.users import UserSyncRequest
from app.services.common import apply_ordering, apply_pagination, validate_enum
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Users(ListResponseMixin):
    @staticmethod
    def upsert(db: Session, payload: UserSyncRequest) -> User:
        """Create or refresh a user from the auth profile.

        Subscription fields are owned by the webhook flow and never touched here.
        """
        email = payload.email.strip().lower()
        clash = (
            db.query(User)
            .filter(func.lower(User.email) == email, User.id != payload.id)
            .first()
        )
        if clash:
            raise HTTPException(status_code=409, detail="Email already belongs to another user")

        user = db.get(User, payload.id)
        created = user is None
        if created:
            user = User(id=payload.id, email=email)
            db.add(user)
        user.email = email
        data = payload.model_dump(exclude_unset=True, exclude={"id", "email"})
        for key, value in data.items():
            if value is None and key in ("role", "email_verified"):
                continue
            if key == "role":
                value = UserRole(value)
            setattr(user, key, value)
        user.mark_for_sync()
        db.commit()
        db.refresh(user)
        logger.info("%s user: %s", "Created" if created else "Updated", user.id)
        return user

    @staticmethod
    def get(db: Session, user_id: str) -> User:
        user = db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @staticmethod
    def list(
        db: Session,
        subscription_status: str | None,
        needs_document_sync: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[User], int]:
        query = db.query(User)
        if subscription_status:
            query = query.filter(
                User.subscription_status
                == validate_enum(subscription_status, SubscriptionStatus, "subscription_status")
            )
        if needs_document_sync is not None:
            query = query.filter(User.needs_document_sync == needs_document_sync)
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": User.created_at, "email": User.email},
        )
        return list(apply_pagination(query, limit, offset).all()), total


users = Users()
