from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from vamo.models.activity import ActivityEvent


class ActivityRepository:
    """활동 기록 - 원장 쓰기와 같은 트랜잭션에 포함"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        user_id: str,
        event_type: str,
        metadata: Dict[str, Any],
        project_id: Optional[str] = None,
    ) -> ActivityEvent:
        event = ActivityEvent(
            user_id=user_id,
            project_id=project_id,
            event_type=event_type,
            event_metadata=metadata,
        )
        self.db.add(event)
        return event
