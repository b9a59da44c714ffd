from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from vamo.models.profile import Profile as ProfileModel
from vamo.schemas.profile import Profile as ProfileSchema
from vamo.repositories.base import BaseRepository


class ProfileRepository(BaseRepository[ProfileModel, ProfileSchema]):
    """
    프로필 리포지토리 - 캐시 잔액(pineapple_balance) 관리

    잔액 변경은 모두 단일 UPDATE 문으로 DB에서 계산합니다 (읽고-계산하고-쓰기 금지).
    동시에 들어온 지급/교환 요청이 서로의 갱신을 덮어쓰지 않습니다.
    """

    def __init__(self, db: Session):
        super().__init__(ProfileModel, ProfileSchema, db)

    def get_profile(self, user_id: str) -> Optional[ProfileSchema]:
        return self.get_by_id(user_id)

    def get_balance(self, user_id: str) -> int:
        """현재 잔액 (프로필이 없으면 0)"""
        balance = self.db.execute(
            select(self.model_class.pineapple_balance).where(
                self.model_class.id == user_id
            )
        ).scalar_one_or_none()
        return balance or 0

    def increment_balance(self, user_id: str, delta: int) -> Optional[int]:
        """
        잔액 원자적 증감 후 새 잔액 반환

        Returns:
            Optional[int]: 갱신 후 잔액, 프로필이 없으면 None
        """
        result = self.db.execute(
            update(self.model_class)
            .where(self.model_class.id == user_id)
            .values(pineapple_balance=self.model_class.pineapple_balance + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        # 같은 트랜잭션 안이므로 방금 쓴 값을 읽음
        return self.get_balance(user_id)

    def decrement_balance_if_sufficient(self, user_id: str, amount: int) -> bool:
        """잔액이 amount 이상일 때만 차감 (조건부 원자적 UPDATE)"""
        result = self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.id == user_id,
                self.model_class.pineapple_balance >= amount,
            )
            .values(pineapple_balance=self.model_class.pineapple_balance - amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
