import enum
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


class SubscriptionStatus(str, enum.Enum):
    """User-facing subscription state, derived from the Stripe status."""

    trial = "trial"
    active = "active"
    past_due = "past_due"
    inactive = "inactive"


class User(Base):
    __tablename__ = "users"

    # Firebase Authentication uid
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.user)
    photo_url: Mapped[str | None] = mapped_column(String(1024))
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # Denormalized subscription summary
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus), default=SubscriptionStatus.trial
    )
    subscription_plan: Mapped[str | None] = mapped_column(String(40))
    events_quota: Mapped[int] = mapped_column(Integer, default=0)
    events_used: Mapped[int] = mapped_column(Integer, default=0)
    usage_period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), index=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255))
    stripe_subscription_status: Mapped[str | None] = mapped_column(String(40))
    stripe_current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    # Firestore projection bookkeeping
    needs_document_sync: Mapped[bool] = mapped_column(Boolean, default=False)
    document_sync_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    document_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    document_sync_attempts: Mapped[int] = mapped_column(Integer, default=0)
    document_sync_error: Mapped[str | None] = mapped_column(Text)
    sync_version: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def mark_for_sync(self) -> None:
        """Flag the user so the Firestore document is rebuilt from this row."""
        self.needs_document_sync = True
        self.document_sync_requested_at = datetime.now(UTC)
        self.sync_version = (self.sync_version or 0) + 1
