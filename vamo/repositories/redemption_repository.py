from typing import List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from vamo.models.base import utcnow
from vamo.models.reward import Redemption as RedemptionModel, RedemptionStatusEnum
from vamo.schemas.rewards import RedemptionSchema
from vamo.repositories.base import BaseRepository


class RedemptionRepository(BaseRepository[RedemptionModel, RedemptionSchema]):
    def __init__(self, db: Session):
        super().__init__(RedemptionModel, RedemptionSchema, db)

    def create_pending(self, user_id: str, amount: int) -> RedemptionModel:
        """pending 상태 교환 요청 생성 (flush 후 ID 확정)"""
        return self.add(
            self.model_class(
                user_id=user_id,
                amount=amount,
                status=RedemptionStatusEnum.PENDING.value,
            )
        )

    def list_for_user(self, user_id: str) -> List[RedemptionSchema]:
        model_instances = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(desc(self.model_class.created_at))
            .all()
        )
        return self._to_schema_list(model_instances)

    def list_pending(self, limit: int = 100) -> List[RedemptionSchema]:
        """처리 대기 중인 교환 요청 (오래된 순)"""
        model_instances = (
            self.db.query(self.model_class)
            .filter(self.model_class.status == RedemptionStatusEnum.PENDING.value)
            .order_by(asc(self.model_class.created_at))
            .limit(limit)
            .all()
        )
        return self._to_schema_list(model_instances)

    def update_status(
        self, redemption_id: str, new_status: RedemptionStatusEnum
    ) -> Optional[RedemptionSchema]:
        instance = (
            self.db.query(self.model_class)
            .filter(self.model_class.id == redemption_id)
            .first()
        )
        if instance is None:
            return None

        instance.status = new_status.value
        if new_status == RedemptionStatusEnum.FULFILLED:
            instance.fulfilled_at = utcnow()
        self.db.flush()
        return self._to_schema(instance)
