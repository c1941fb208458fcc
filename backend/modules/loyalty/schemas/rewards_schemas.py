# backend/modules/loyalty/schemas/rewards_schemas.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from ..models.loyalty_models import CustomerTier
from ..models.rewards_models import RedemptionStatus


# Base schemas
class RewardBase(BaseModel):
    """Base schema for catalog rewards"""

    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    category: str = Field("food", max_length=50)
    image_url: Optional[str] = Field(None, max_length=500)

    points_required: int = Field(..., gt=0)
    min_tier: CustomerTier = CustomerTier.BRONZE
    is_active: bool = True

    # Stock cap; None means unlimited
    total_available: Optional[int] = Field(None, ge=0)


class RewardCreate(RewardBase):
    pass


class RewardUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    image_url: Optional[str] = Field(None, max_length=500)
    points_required: Optional[int] = Field(None, gt=0)
    min_tier: Optional[CustomerTier] = None
    is_active: Optional[bool] = None
    total_available: Optional[int] = Field(None, ge=0)


class RewardResponse(RewardBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    total_redeemed: int
    created_at: datetime
    updated_at: datetime


# Redemption schemas
class RedemptionRequest(BaseModel):
    customer_id: int
    branch_id: Optional[int] = None


class RedemptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    customer_id: int
    reward_id: int
    points_used: int
    status: RedemptionStatus
    redeemed_at: datetime
    used_at: Optional[datetime] = None


class RedemptionDetailResponse(RedemptionResponse):
    """Redemption with the reward and customer names for staff listings"""
    reward_name: str
    customer_name: str
    customer_email: str


class RedemptionExpireRequest(BaseModel):
    """Expire pending redemptions older than the given age"""
    older_than_days: int = Field(30, ge=0, le=3650)


class RedemptionExpireResponse(BaseModel):
    expired: int


# Statistics
class PopularReward(BaseModel):
    reward_id: int
    name: str
    redemptions: int


class RewardStats(BaseModel):
    total_rewards: int
    active_rewards: int
    total_redemptions: int
    popular_rewards: List[PopularReward]
