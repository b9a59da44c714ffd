from typing import Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from vamo.models.base import BaseModel, generate_uuid


class ActivityEvent(BaseModel):
    """프로젝트 타임라인에 표시되는 활동 기록 (reward_earned, reward_redeemed 등)"""

    __tablename__ = "activity_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    project_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # "metadata"는 Declarative 예약어라 속성명만 분리
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
