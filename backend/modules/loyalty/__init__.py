# backend/modules/loyalty/__init__.py

"""
Restaurant loyalty module: configuration, point calculation, the point
ledger, the reward catalog and reward redemption.
"""

from .routes.loyalty_routes import router as loyalty_router
from .routes.rewards_routes import router as rewards_router
from .models import (
    Restaurant, Customer, MenuItem, PointTransaction,
    Reward, RewardRedemption,
    CustomerTier, LoyaltyMode, TransactionType, RedemptionStatus
)
from .services.loyalty_config import LoyaltyConfigService, resolve_config
from .services.points_engine import calculate_points, calculate_order_points
from .services.redemption_service import RedemptionService

__all__ = [
    "loyalty_router",
    "rewards_router",
    "Restaurant",
    "Customer",
    "MenuItem",
    "PointTransaction",
    "Reward",
    "RewardRedemption",
    "CustomerTier",
    "LoyaltyMode",
    "TransactionType",
    "RedemptionStatus",
    "LoyaltyConfigService",
    "resolve_config",
    "calculate_points",
    "calculate_order_points",
    "RedemptionService",
]
