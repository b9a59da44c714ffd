from enum import Enum
from typing import Optional, Union

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vamo.models.base import BaseModel


class ProfileRole(str, Enum):
    """사용자 역할 정의"""

    USER = "user"
    ADMIN = "admin"

    @classmethod
    def is_admin(cls, role: Union[str, "ProfileRole"]) -> bool:
        if isinstance(role, cls):
            role = role.value
        return role == cls.ADMIN.value


class Profile(BaseModel):
    """
    사용자 프로필 - Supabase auth 사용자와 1:1

    pineapple_balance는 reward_ledger.amount 합계의 캐시 값입니다.
    원장 기록과 같은 트랜잭션 안에서 원자적 증감(UPDATE ... SET x = x + n)으로만 변경합니다.
    """

    __tablename__ = "profiles"

    # Supabase auth.users.id 와 동일한 UUID
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pineapple_balance: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProfileRole.USER.value, server_default="user"
    )
