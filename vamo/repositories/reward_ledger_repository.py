"""
리워드 원장 리포지토리

원장 INSERT는 사전 중복 조회 없이 바로 실행합니다.
중복 여부는 idempotency_key 유니크 제약 위반(IntegrityError)으로만 판단합니다.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vamo.models.reward import RewardEvent as RewardEventModel
from vamo.schemas.rewards import RewardLedgerEntry
from vamo.repositories.base import BaseRepository

# Postgres unique_violation
UNIQUE_VIOLATION_PGCODE = "23505"


def is_duplicate_idempotency_key(error: IntegrityError) -> bool:
    """IntegrityError가 idempotency_key 유니크 제약 위반인지 판별"""
    message = str(error.orig)
    if "idempotency_key" not in message:
        return False
    pgcode = getattr(error.orig, "pgcode", None)
    return pgcode is None or pgcode == UNIQUE_VIOLATION_PGCODE


class RewardLedgerRepository(BaseRepository[RewardEventModel, RewardLedgerEntry]):
    def __init__(self, db: Session):
        super().__init__(RewardEventModel, RewardLedgerEntry, db)

    def insert_event(
        self,
        user_id: str,
        project_id: Optional[str],
        event_type: str,
        amount: int,
        idempotency_key: str,
    ) -> RewardEventModel:
        """
        원장 항목 INSERT (flush까지, commit은 호출자)

        Raises:
            IntegrityError: 같은 idempotency_key가 이미 존재하는 경우 등
        """
        return self.add(
            self.model_class(
                user_id=user_id,
                project_id=project_id,
                event_type=event_type,
                amount=amount,
                idempotency_key=idempotency_key,
            )
        )

    def count_since(self, user_id: str, since: datetime) -> int:
        """since 이후 생성된 사용자의 원장 항목 수 (레이트 리밋용)"""
        return self.db.execute(
            select(func.count(self.model_class.id)).where(
                self.model_class.user_id == user_id,
                self.model_class.created_at >= since,
            )
        ).scalar_one()

    def list_for_user(self, user_id: str, limit: int = 50) -> List[RewardLedgerEntry]:
        """사용자 원장 조회 (최신순)"""
        model_instances = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(desc(self.model_class.created_at))
            .limit(limit)
            .all()
        )
        return self._to_schema_list(model_instances)

    def sum_for_user(self, user_id: str) -> Tuple[int, int]:
        """사용자 원장 합계와 항목 수"""
        total, count = self.db.execute(
            select(
                func.coalesce(func.sum(self.model_class.amount), 0),
                func.count(self.model_class.id),
            ).where(self.model_class.user_id == user_id)
        ).one()
        return int(total), int(count)
