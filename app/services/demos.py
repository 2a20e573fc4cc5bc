import logging
from datetime import UTC, datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.demo import Demo
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)


class Demos:
    @staticmethod
    def get(db: Session, demo_id: str) -> Demo:
        demo = db.get(Demo, demo_id)
        if not demo:
            raise HTTPException(status_code=404, detail="Demo not found")
        return demo

    @staticmethod
    def feature(db: Session, demo_id: str, user_id: str, duration_days: int = 30) -> Demo:
        """Feature a demo; only its host or an admin may do this."""
        demo = Demos.get(db, demo_id)
        if demo.host_id != user_id:
            user = db.get(User, user_id)
            if user is None or user.role is not UserRole.admin:
                raise HTTPException(
                    status_code=403,
                    detail="Only the demo host or an admin can feature a demo",
                )
        demo.is_featured = True
        demo.featured_until = datetime.now(UTC) + timedelta(days=duration_days)
        db.commit()
        db.refresh(demo)
        logger.info("Featured demo %s until %s", demo.id, demo.featured_until)
        return demo


demos = Demos()
