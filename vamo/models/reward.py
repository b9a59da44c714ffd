"""
파인애플 리워드 데이터 모델

reward_ledger는 모든 지급/차감 내역을 저장하는 원장(Ledger) 테이블입니다.
idempotency_key 유니크 제약이 중복 지급을 막는 유일한 장치이며,
애플리케이션은 사전 조회 없이 INSERT 후 제약 위반을 "이미 지급됨"으로 해석합니다.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from vamo.models.base import BaseModel, generate_uuid


class RedemptionStatusEnum(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"


class RewardEvent(BaseModel):
    """
    리워드 원장 테이블

    1. 불변성(Immutable): 한번 생성된 레코드는 수정되지 않음
    2. 멱등성(Idempotent): idempotency_key 유니크 제약으로 중복 지급 방지
    3. 부호: 양수는 지급, 음수는 교환(차감)
    """

    __tablename__ = "reward_ledger"
    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_reward_ledger_idempotency_key"),
        Index("idx_reward_ledger_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    project_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # 지급 사유 태그 (예: "chat_prompt", "link_github", "reward_redeemed")
    event_type: Mapped[str] = mapped_column(Text, nullable=False)

    # 포인트 변동량 - 양수면 지급, 음수면 차감
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # 형식 예시: "{user_id}:{project_id}:{event_type}:{discriminator}", "redeem-{redemption_id}"
    idempotency_key: Mapped[str] = mapped_column(Text, nullable=False)


class Redemption(BaseModel):
    __tablename__ = "redemptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RedemptionStatusEnum.PENDING.value,
        server_default="pending",
    )
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
