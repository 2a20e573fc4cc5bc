from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import SubscriptionStatus, UserRole


class UserSyncRequest(BaseModel):
    id: str = Field(min_length=1, max_length=128)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str | None = Field(default=None, max_length=255)
    role: Literal["user", "admin"] | None = None
    photo_url: str | None = Field(default=None, max_length=1024)
    email_verified: bool | None = None


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    email: str
    name: str | None = None
    role: UserRole
    photo_url: str | None = None
    email_verified: bool
    subscription_status: SubscriptionStatus
    subscription_plan: str | None = None
    events_quota: int
    events_used: int
    trial_ends_at: datetime | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_subscription_status: str | None = None
    stripe_current_period_end: datetime | None = None
    needs_document_sync: bool
    document_synced_at: datetime | None = None
    document_sync_error: str | None = None
    created_at: datetime
    updated_at: datetime
