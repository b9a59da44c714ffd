"""
리워드 원장 서비스 - 파인애플 지급의 핵심 로직

1. 멱등성: 같은 idempotency_key로는 최대 한 번만 지급 (DB 유니크 제약)
2. 레이트 리밋: 사용자별 최근 60분 슬라이딩 윈도우 내 지급 건수 제한
3. 정합성: 원장 INSERT, 잔액 원자적 증가, 활동 기록을 한 트랜잭션으로 처리
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vamo.config import Settings
from vamo.core.exceptions import (
    AuthorizationError,
    BaseAPIException,
    InternalServerError,
    NotFoundError,
    RateLimitError,
)
from vamo.core.rewards import (
    CHAT_PROMPT_EVENT_TYPE,
    MESSAGE_PREVIEW_LENGTH,
    REWARD_EARNED_EVENT_TYPE,
    TRACTION_INTENTS,
    build_idempotency_key,
    chat_reward_events,
    get_reward_amount,
)
from vamo.repositories.activity_repository import ActivityRepository
from vamo.repositories.profile_repository import ProfileRepository
from vamo.repositories.redemption_repository import RedemptionRepository
from vamo.repositories.reward_ledger_repository import (
    RewardLedgerRepository,
    is_duplicate_idempotency_key,
)
from vamo.schemas.rewards import (
    ChatRewardGrant,
    ChatRewardRequest,
    ChatRewardResult,
    IntegrityCheckResponse,
    RewardGrantRequest,
    RewardGrantResult,
    WalletResponse,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_POLICY_ZERO = "zero"
RATE_LIMIT_POLICY_REJECT = "reject"


class RewardLedgerService:
    """리워드 지급/조회 비즈니스 로직을 담당하는 서비스"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.profile_repo = ProfileRepository(db)
        self.ledger_repo = RewardLedgerRepository(db)
        self.redemption_repo = RedemptionRepository(db)
        self.activity_repo = ActivityRepository(db)

    def grant_reward(
        self, current_user_id: str, request: RewardGrantRequest
    ) -> RewardGrantResult:
        """리워드 지급

        Args:
            current_user_id: 인증된 사용자 ID
            request: 지급 요청 (user_id는 current_user_id와 같아야 함)

        Returns:
            RewardGrantResult: 지급 여부, 지급량, 호출 후 잔액
        """
        user_id = str(request.user_id)
        if user_id != current_user_id:
            raise AuthorizationError("User ID mismatch")

        project_id = str(request.project_id) if request.project_id else None

        try:
            rate_limited = self._check_rate_limit(user_id)
            amount = 0
            if not rate_limited:
                amount = get_reward_amount(
                    request.event_type, self.settings.DEFAULT_REWARD_AMOUNT
                )

            if amount <= 0:
                return self._not_granted(user_id, "Rate limited or 0 amount")

            return self._grant(
                user_id=user_id,
                project_id=project_id,
                event_type=request.event_type,
                amount=amount,
                idempotency_key=request.idempotency_key,
            )
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to grant reward for user {user_id}: {str(e)}")
            raise InternalServerError() from e

    def grant_chat_rewards(
        self, current_user_id: str, request: ChatRewardRequest
    ) -> ChatRewardResult:
        """채팅 메시지 한 건에 대한 리워드 일괄 지급

        메시지 ID를 discriminator로 쓰므로 같은 메시지를 다시 보내도 중복 지급되지 않습니다.
        윈도우 내 남은 지급 건수를 한 번 조회하고, 일괄 처리 중 실제 지급은 그 건수를 넘지 않습니다.
        채팅 자체와 트랙션 신호는 해당 지급과 같은 트랜잭션으로 활동 기록에 남깁니다.
        """
        user_id = current_user_id
        project_id = str(request.project_id)
        traction_signal = (request.traction_signal or "").strip()
        event_types = chat_reward_events(request.intent, bool(traction_signal))

        try:
            remaining = self._remaining_quota(user_id)

            grants: List[ChatRewardGrant] = []
            new_balance: Optional[int] = None
            for event_type in event_types:
                amount = 0 if remaining <= 0 else get_reward_amount(
                    event_type, self.settings.DEFAULT_REWARD_AMOUNT
                )
                if amount <= 0:
                    grants.append(
                        ChatRewardGrant(event_type=event_type, amount=0, granted=False)
                    )
                    continue

                key = build_idempotency_key(
                    user_id, project_id, event_type, request.message_id
                )
                result = self._grant(
                    user_id,
                    project_id,
                    event_type,
                    amount,
                    key,
                    extra_activity=self._chat_activity(event_type, request, traction_signal),
                )
                if result.granted:
                    remaining -= 1
                new_balance = result.new_balance
                grants.append(
                    ChatRewardGrant(
                        event_type=event_type,
                        amount=result.amount,
                        granted=result.granted,
                    )
                )

            if new_balance is None:
                new_balance = self.profile_repo.get_balance(user_id)

            earned = sum(grant.amount for grant in grants)
            logger.info(
                f"Chat rewards for user {user_id}, message {request.message_id}: +{earned}"
            )
            return ChatRewardResult(
                pineapples_earned=earned, new_balance=new_balance, grants=grants
            )
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to grant chat rewards for user {user_id}: {str(e)}")
            raise InternalServerError() from e

    def get_balance(self, user_id: str) -> int:
        return self.profile_repo.get_balance(user_id)

    def get_wallet(self, user_id: str) -> WalletResponse:
        """지갑 화면 데이터 - 잔액, 최근 원장, 교환 내역"""
        return WalletResponse(
            balance=self.profile_repo.get_balance(user_id),
            rewards=self.ledger_repo.list_for_user(
                user_id, limit=self.settings.WALLET_HISTORY_LIMIT
            ),
            redemptions=self.redemption_repo.list_for_user(user_id),
        )

    def verify_integrity(self, user_id: str) -> IntegrityCheckResponse:
        """
        캐시 잔액과 원장 합계 비교

        용도:
        - 동시성 버그 또는 수동 DB 수정으로 인한 불일치 감지
        """
        cached_balance = self.profile_repo.get_balance(user_id)
        ledger_balance, entry_count = self.ledger_repo.sum_for_user(user_id)
        status = "OK" if cached_balance == ledger_balance else "MISMATCH"
        if status == "MISMATCH":
            logger.warning(
                f"Balance mismatch for user {user_id}: cached={cached_balance}, ledger={ledger_balance}"
            )

        return IntegrityCheckResponse(
            status=status,
            user_id=user_id,
            cached_balance=cached_balance,
            ledger_balance=ledger_balance,
            entry_count=entry_count,
            verified_at=datetime.now(timezone.utc),
        )

    def _chat_activity(
        self, event_type: str, request: ChatRewardRequest, traction_signal: str
    ) -> List[Tuple[str, Dict[str, Any]]]:
        """채팅 지급 이벤트에 함께 남길 활동 기록"""
        if event_type == CHAT_PROMPT_EVENT_TYPE:
            preview = (request.message or "")[:MESSAGE_PREVIEW_LENGTH]
            return [
                (
                    CHAT_PROMPT_EVENT_TYPE,
                    {"tag": request.intent or "general", "message_preview": preview},
                )
            ]
        if traction_signal and event_type == TRACTION_INTENTS.get(request.intent or ""):
            return [(event_type, {"description": traction_signal})]
        return []

    def _check_rate_limit(self, user_id: str) -> bool:
        """최근 윈도우 내 지급 건수가 한도 이상이면 True (reject 정책이면 예외)"""
        return self._remaining_quota(user_id) <= 0

    def _remaining_quota(self, user_id: str) -> int:
        """윈도우 내 남은 지급 가능 건수 (reject 정책에서 0이면 예외)"""
        window_start = datetime.now(timezone.utc) - timedelta(
            minutes=self.settings.RATE_LIMIT_WINDOW_MINUTES
        )
        recent_count = self.ledger_repo.count_since(user_id, window_start)
        remaining = self.settings.MAX_REWARDS_PER_HOUR - recent_count
        if remaining > 0:
            return remaining

        logger.warning(
            f"Reward rate limit reached for user {user_id}: {recent_count} in window"
        )
        if self.settings.REWARD_RATE_LIMIT_POLICY == RATE_LIMIT_POLICY_REJECT:
            raise RateLimitError(
                "Too many rewards in the last hour",
                details={
                    "limit": self.settings.MAX_REWARDS_PER_HOUR,
                    "window_minutes": self.settings.RATE_LIMIT_WINDOW_MINUTES,
                },
            )
        return 0

    def _grant(
        self,
        user_id: str,
        project_id: Optional[str],
        event_type: str,
        amount: int,
        idempotency_key: str,
        extra_activity: Optional[List[Tuple[str, Dict[str, Any]]]] = None,
    ) -> RewardGrantResult:
        """
        원장 INSERT → 잔액 원자적 증가 → 활동 기록 → commit

        extra_activity의 (event_type, metadata) 항목도 같은 트랜잭션에서 기록합니다.

        유니크 제약 위반은 "이미 지급됨"으로 흡수하고 현재 잔액을 그대로 반환합니다.
        """
        try:
            self.ledger_repo.insert_event(
                user_id=user_id,
                project_id=project_id,
                event_type=event_type,
                amount=amount,
                idempotency_key=idempotency_key,
            )
        except IntegrityError as e:
            self.db.rollback()
            if not is_duplicate_idempotency_key(e):
                raise
            logger.info(f"Reward already granted: {idempotency_key}")
            return self._not_granted(user_id, "Already awarded")

        new_balance = self.profile_repo.increment_balance(user_id, amount)
        if new_balance is None:
            self.db.rollback()
            raise NotFoundError(f"Profile not found: {user_id}")

        self.activity_repo.record(
            user_id=user_id,
            project_id=project_id,
            event_type=REWARD_EARNED_EVENT_TYPE,
            metadata={"event": event_type, "amount": amount},
        )
        for activity_type, metadata in extra_activity or []:
            self.activity_repo.record(
                user_id=user_id,
                project_id=project_id,
                event_type=activity_type,
                metadata=metadata,
            )
        self.db.commit()

        logger.info(
            f"Granted {amount} pineapples to user {user_id} for {event_type} (balance {new_balance})"
        )
        return RewardGrantResult(
            granted=True,
            amount=amount,
            new_balance=new_balance,
            message="Reward granted",
        )

    def _not_granted(self, user_id: str, message: str) -> RewardGrantResult:
        return RewardGrantResult(
            granted=False,
            amount=0,
            new_balance=self.profile_repo.get_balance(user_id),
            message=message,
        )
