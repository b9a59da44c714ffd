from .profile import Profile
from .rewards import (
    RewardGrantRequest,
    RewardGrantResult,
    RedeemRequest,
    RedeemResponse,
    WalletResponse,
)
