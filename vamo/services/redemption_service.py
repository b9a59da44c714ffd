import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vamo.config import Settings
from vamo.core.exceptions import (
    BaseAPIException,
    InsufficientBalanceError,
    InternalServerError,
    NotFoundError,
    ValidationError,
)
from vamo.core.rewards import REDEMPTION_EVENT_TYPE, build_redemption_key
from vamo.models.reward import RedemptionStatusEnum
from vamo.repositories.activity_repository import ActivityRepository
from vamo.repositories.profile_repository import ProfileRepository
from vamo.repositories.redemption_repository import RedemptionRepository
from vamo.repositories.reward_ledger_repository import RewardLedgerRepository
from vamo.schemas.rewards import RedeemResponse, RedemptionSchema

logger = logging.getLogger(__name__)


class RedemptionService:
    """파인애플 교환 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.profile_repo = ProfileRepository(db)
        self.ledger_repo = RewardLedgerRepository(db)
        self.redemption_repo = RedemptionRepository(db)
        self.activity_repo = ActivityRepository(db)

    def redeem(self, user_id: str, amount: int) -> RedeemResponse:
        """파인애플 교환 요청

        순서 (변경 금지):
        1. 잔액 조건부 차감
        2. pending 교환 레코드 생성 (ID 확정)
        3. 교환 ID로 만든 키로 음수 원장 항목 기록
        4. commit

        Args:
            user_id: 사용자 ID
            amount: 교환 수량

        Returns:
            RedeemResponse: 교환 레코드와 차감 후 잔액
        """
        minimum = self.settings.MINIMUM_REDEMPTION
        if amount < minimum:
            raise ValidationError(
                f"Minimum redemption is {minimum} pineapples",
                details={"minimum": minimum, "requested": amount},
            )

        try:
            if not self.profile_repo.decrement_balance_if_sufficient(user_id, amount):
                balance = self.profile_repo.get_balance(user_id)
                self.db.rollback()
                raise InsufficientBalanceError(requested=amount, balance=balance)

            try:
                redemption = self.redemption_repo.create_pending(user_id, amount)
            except SQLAlchemyError as e:
                # 차감 전 잔액으로 복구한 뒤 전파
                self.db.rollback()
                logger.error(
                    f"Redemption insert failed for user {user_id}, balance restored: {str(e)}"
                )
                raise InternalServerError() from e

            self.ledger_repo.insert_event(
                user_id=user_id,
                project_id=None,
                event_type=REDEMPTION_EVENT_TYPE,
                amount=-amount,
                idempotency_key=build_redemption_key(redemption.id),
            )
            self.activity_repo.record(
                user_id=user_id,
                event_type=REDEMPTION_EVENT_TYPE,
                metadata={"amount": amount, "redemption_id": redemption.id},
            )
            new_balance = self.profile_repo.get_balance(user_id)
            self.db.commit()
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to redeem for user {user_id}: {str(e)}")
            raise InternalServerError() from e

        logger.info(
            f"User {user_id} redeemed {amount} pineapples (redemption {redemption.id}, balance {new_balance})"
        )
        return RedeemResponse(
            redemption=RedemptionSchema.model_validate(redemption),
            new_balance=new_balance,
        )

    def list_pending(self, limit: int = 100) -> List[RedemptionSchema]:
        """대기 중인 교환 요청 조회 (관리자용)"""
        return self.redemption_repo.list_pending(limit=limit)

    def update_status(self, redemption_id: str, new_status: str) -> RedemptionSchema:
        """교환 요청 수동 처리 (관리자용)

        pending → fulfilled | failed 전이만 허용합니다. failed 처리 시 자동 환불은 없습니다.
        """
        status_mapping = {
            "fulfilled": RedemptionStatusEnum.FULFILLED,
            "failed": RedemptionStatusEnum.FAILED,
        }
        if new_status not in status_mapping:
            raise ValidationError(f"Invalid status: {new_status}")

        current = self.redemption_repo.get_by_id(redemption_id)
        if current is None:
            raise NotFoundError(f"Redemption not found: {redemption_id}")
        if current.status != RedemptionStatusEnum.PENDING.value:
            raise ValidationError(
                f"Redemption {redemption_id} is already {current.status}"
            )

        try:
            updated = self.redemption_repo.update_status(
                redemption_id, status_mapping[new_status]
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update redemption {redemption_id}: {str(e)}")
            raise InternalServerError() from e

        logger.info(f"Redemption {redemption_id} marked {new_status}")
        return updated
