from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import Field

from vamo.schemas.base import CamelModel


class RewardGrantRequest(CamelModel):
    """리워드 지급 요청 (POST /rewards)"""

    user_id: UUID = Field(..., description="지급 대상 사용자 ID (인증 사용자와 같아야 함)")
    project_id: Optional[UUID] = Field(None, description="연관 프로젝트 ID")
    event_type: str = Field(..., min_length=1, max_length=100, description="지급 사유 태그")
    idempotency_key: str = Field(..., min_length=1, max_length=255, description="멱등성 키")


class RewardGrantResult(CamelModel):
    """리워드 지급 결과"""

    granted: bool = Field(..., description="이번 호출로 지급되었는지")
    amount: int = Field(..., description="지급된 수량")
    new_balance: int = Field(..., description="호출 후 잔액")
    message: str = Field(..., description="응답 메시지")


class RewardGrantResponse(CamelModel):
    """POST /rewards 응답 - 프론트엔드는 granted 대신 rewarded 키를 사용"""

    rewarded: bool
    amount: int
    new_balance: int
    message: str

    @classmethod
    def from_result(cls, result: RewardGrantResult) -> "RewardGrantResponse":
        return cls(
            rewarded=result.granted,
            amount=result.amount,
            new_balance=result.new_balance,
            message=result.message,
        )


class ChatRewardRequest(CamelModel):
    """채팅 메시지 한 건에 대한 리워드 일괄 지급 요청"""

    project_id: UUID
    message_id: str = Field(..., min_length=1, max_length=100)
    intent: Optional[Literal["feature", "customer", "revenue", "bug", "improvement", "milestone", "general"]] = None
    message: Optional[str] = Field(None, max_length=4000, description="채팅 메시지 본문 (활동 기록 미리보기용)")
    traction_signal: Optional[str] = Field(None, max_length=1000)


class ChatRewardGrant(CamelModel):
    event_type: str
    amount: int
    granted: bool


class ChatRewardResult(CamelModel):
    pineapples_earned: int
    new_balance: int
    grants: List[ChatRewardGrant]


class RewardLedgerEntry(CamelModel):
    """리워드 원장 항목"""

    id: str
    user_id: str
    project_id: Optional[str] = None
    event_type: str
    amount: int
    idempotency_key: str
    created_at: datetime


class RedemptionSchema(CamelModel):
    id: str
    user_id: str
    amount: int
    status: str
    created_at: datetime
    fulfilled_at: Optional[datetime] = None


class RedeemRequest(CamelModel):
    """파인애플 교환 요청 (POST /redeem)"""

    amount: int = Field(..., gt=0, description="교환할 파인애플 수량")


class RedeemResponse(CamelModel):
    redemption: RedemptionSchema
    new_balance: int


class RedemptionStatusUpdateRequest(CamelModel):
    """관리자 교환 처리 요청"""

    status: Literal["fulfilled", "failed"]


class WalletResponse(CamelModel):
    """지갑 화면 데이터"""

    balance: int
    rewards: List[RewardLedgerEntry]
    redemptions: List[RedemptionSchema]


class IntegrityCheckResponse(CamelModel):
    """잔액 정합성 검증 결과"""

    status: Literal["OK", "MISMATCH"]
    user_id: str
    cached_balance: int
    ledger_balance: int
    entry_count: int
    verified_at: datetime
