from fastapi import APIRouter

from app.schemas.meetings import MeetingCreate, MeetingRead
from app.services.meetings import meetings

router = APIRouter(prefix="/meetings", tags=["meetings"])


@router.post("", response_model=MeetingRead)
def create_meeting(payload: MeetingCreate):
    return meetings.create(payload)
