from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.demos import DemoFeatureRequest, DemoRead
from app.services.demos import demos

router = APIRouter(prefix="/demos", tags=["demos"])


@router.post("/{demo_id}/feature", response_model=DemoRead)
def feature_demo(demo_id: str, payload: DemoFeatureRequest, db: Session = Depends(get_db)):
    return demos.feature(db, demo_id, payload.user_id, payload.duration)
