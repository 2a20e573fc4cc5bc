from datetime import datetime

from pydantic import BaseModel, Field


class MeetingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    start_time: datetime
    end_time: datetime


class MeetingRead(BaseModel):
    meet_link: str
    event_id: str | None = None
    is_mock: bool = False
