from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DemoFeatureRequest(BaseModel):
    user_id: str = Field(min_length=1)
    duration: int = Field(default=30, ge=1, le=365)


class DemoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    host_id: str | None = None
    title: str
    is_featured: bool
    featured_until: datetime | None = None
