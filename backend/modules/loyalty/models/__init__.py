# backend/modules/loyalty/models/__init__.py

from .loyalty_models import (
    CustomerTier,
    LoyaltyMode,
    TransactionType,
    Restaurant,
    Customer,
    MenuItem,
    PointTransaction,
    TIER_RANKS,
    tier_rank,
)
from .rewards_models import (
    RedemptionStatus,
    Reward,
    RewardRedemption,
)

__all__ = [
    "CustomerTier",
    "LoyaltyMode",
    "TransactionType",
    "Restaurant",
    "Customer",
    "MenuItem",
    "PointTransaction",
    "TIER_RANKS",
    "tier_rank",
    "RedemptionStatus",
    "Reward",
    "RewardRedemption",
]
