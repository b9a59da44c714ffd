# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .profile_repository import ProfileRepository
from .reward_ledger_repository import RewardLedgerRepository
from .redemption_repository import RedemptionRepository
from .activity_repository import ActivityRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "RewardLedgerRepository",
    "RedemptionRepository",
    "ActivityRepository",
]
