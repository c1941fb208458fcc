# backend/modules/loyalty/schemas/loyalty_schemas.py

"""
Schemas for loyalty configuration, point calculation and the point ledger.
"""

from typing import List, Dict, Any, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.loyalty_models import CustomerTier, LoyaltyMode, TransactionType


# ========== Configuration Defaults ==========

DEFAULT_POINT_VALUE = 0.05
DEFAULT_PROFIT_ALLOCATION_PERCENT = 20
DEFAULT_MANUAL_POINTS_PER_CURRENCY = 0.1
DEFAULT_SPEND_POINTS_PER_CURRENCY = 0.2
DEFAULT_TIER_MULTIPLIERS = {
    CustomerTier.BRONZE.value: 1.0,
    CustomerTier.SILVER.value: 1.25,
    CustomerTier.GOLD.value: 1.5,
    CustomerTier.PLATINUM.value: 2.0,
}

PROFIT_ALLOCATION_PERCENT_RANGE = (1, 50)
MANUAL_POINTS_PER_CURRENCY_RANGE = (0.1, 5.0)
SPEND_POINTS_PER_CURRENCY_RANGE = (0.1, 2.0)
MIN_TIER_MULTIPLIER = 1.0


class BlanketModeType(str, Enum):
    """Restaurant-wide point award formulas"""
    SMART = "smart"    # Share of an estimated profit
    MANUAL = "manual"  # Flat points per currency unit
    SPEND = "spend"    # Flat points per currency unit, configured separately


# ========== Resolved Configuration ==========

class SmartSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    profit_allocation_percent: int = DEFAULT_PROFIT_ALLOCATION_PERCENT


class FlatRateSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    points_per_currency: float


class BlanketMode(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    type: BlanketModeType = BlanketModeType.SMART
    smart_settings: SmartSettings = SmartSettings()
    manual_settings: FlatRateSettings = FlatRateSettings(
        points_per_currency=DEFAULT_MANUAL_POINTS_PER_CURRENCY
    )
    spend_settings: FlatRateSettings = FlatRateSettings(
        points_per_currency=DEFAULT_SPEND_POINTS_PER_CURRENCY
    )


class TierMultipliers(BaseModel):
    model_config = ConfigDict(frozen=True)

    bronze: float = DEFAULT_TIER_MULTIPLIERS["bronze"]
    silver: float = DEFAULT_TIER_MULTIPLIERS["silver"]
    gold: float = DEFAULT_TIER_MULTIPLIERS["gold"]
    platinum: float = DEFAULT_TIER_MULTIPLIERS["platinum"]

    def for_tier(self, tier: Optional[str]) -> float:
        """Multiplier for a tier name; unknown tiers earn at 1.0"""
        key = tier.value if isinstance(tier, CustomerTier) else str(tier or "").lower()
        if key in DEFAULT_TIER_MULTIPLIERS:
            return getattr(self, key)
        return 1.0


class LoyaltyConfiguration(BaseModel):
    """Fully resolved restaurant loyalty configuration"""
    model_config = ConfigDict(frozen=True)

    point_value: float = DEFAULT_POINT_VALUE
    blanket_mode: BlanketMode = BlanketMode()
    tier_multipliers: TierMultipliers = TierMultipliers()

    def to_settings(self) -> Dict[str, Any]:
        """Render the JSON blob stored in restaurants.settings"""
        return self.model_dump(mode="json")


# ========== Configuration Updates ==========

class SmartSettingsUpdate(BaseModel):
    profit_allocation_percent: Optional[int] = Field(
        None, ge=PROFIT_ALLOCATION_PERCENT_RANGE[0], le=PROFIT_ALLOCATION_PERCENT_RANGE[1]
    )


class ManualSettingsUpdate(BaseModel):
    points_per_currency: Optional[float] = Field(
        None, ge=MANUAL_POINTS_PER_CURRENCY_RANGE[0], le=MANUAL_POINTS_PER_CURRENCY_RANGE[1]
    )


class SpendSettingsUpdate(BaseModel):
    points_per_currency: Optional[float] = Field(
        None, ge=SPEND_POINTS_PER_CURRENCY_RANGE[0], le=SPEND_POINTS_PER_CURRENCY_RANGE[1]
    )


class BlanketModeUpdate(BaseModel):
    enabled: Optional[bool] = None
    type: Optional[BlanketModeType] = None
    smart_settings: Optional[SmartSettingsUpdate] = None
    manual_settings: Optional[ManualSettingsUpdate] = None
    spend_settings: Optional[SpendSettingsUpdate] = None


class TierMultipliersUpdate(BaseModel):
    bronze: Optional[float] = Field(None, ge=MIN_TIER_MULTIPLIER)
    silver: Optional[float] = Field(None, ge=MIN_TIER_MULTIPLIER)
    gold: Optional[float] = Field(None, ge=MIN_TIER_MULTIPLIER)
    platinum: Optional[float] = Field(None, ge=MIN_TIER_MULTIPLIER)


class LoyaltyConfigUpdate(BaseModel):
    """Partial configuration update; omitted fields keep their stored value"""
    point_value: Optional[float] = Field(None, gt=0)
    blanket_mode: Optional[BlanketModeUpdate] = None
    tier_multipliers: Optional[TierMultipliersUpdate] = None


# ========== Menu Items ==========

class MenuItemLoyaltySettings(BaseModel):
    profit_allocation_percent: float = Field(0, ge=0, le=100)
    fixed_points: int = Field(0, ge=0)


class MenuItemLoyaltyInput(BaseModel):
    """The fields of a menu item that drive per-item point calculation"""
    cost_price: float = Field(0, ge=0)
    selling_price: float = Field(0, ge=0)
    loyalty_mode: LoyaltyMode = LoyaltyMode.NONE
    loyalty_settings: MenuItemLoyaltySettings = MenuItemLoyaltySettings()


class MenuItemCreate(MenuItemLoyaltyInput):
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    category: str = Field("main", max_length=50)
    is_active: bool = True


class MenuItemResponse(MenuItemCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    created_at: datetime
    updated_at: datetime


# ========== Point Calculation ==========

class PointsPreviewRequest(BaseModel):
    """What-if point calculation; either a stored or an inline menu item may be given"""
    menu_item_id: Optional[int] = None
    menu_item: Optional[MenuItemLoyaltyInput] = None
    order_amount: float = 0
    customer_tier: CustomerTier = CustomerTier.BRONZE
    quantity: int = 1


class PointsCalculation(BaseModel):
    """Engine output"""
    points: int
    value_in_currency: float
    breakdown: Dict[str, Any]


class OrderLine(BaseModel):
    menu_item_id: int
    quantity: int = Field(1, ge=1)


# ========== Customers ==========

class CustomerCreate(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    total_points: int
    lifetime_points: int
    current_tier: CustomerTier
    tier_progress: int
    visit_count: int
    total_spent: float
    last_visit: Optional[datetime] = None
    created_at: datetime


# ========== Point Ledger ==========

# Types that may be recorded by hand; purchases and redemptions have their own flows
MANUAL_TRANSACTION_TYPES = (TransactionType.BONUS, TransactionType.REFERRAL, TransactionType.SIGNUP)


class PointTransactionCreate(BaseModel):
    """Manual point award (bonus, referral or signup)"""
    type: TransactionType
    points: int = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    branch_id: Optional[int] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in MANUAL_TRANSACTION_TYPES:
            allowed = ", ".join(t.value for t in MANUAL_TRANSACTION_TYPES)
            raise ValueError(f"manual transactions must be one of: {allowed}")
        return v


class PointTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    customer_id: int
    branch_id: Optional[int] = None
    type: TransactionType
    points: int
    amount_spent: Optional[float] = None
    description: Optional[str] = None
    reward_id: Optional[int] = None
    created_at: datetime


class PurchaseAwardRequest(BaseModel):
    """Award points for a purchase, either by amount or by itemised order lines"""
    amount_spent: float = Field(..., ge=0)
    items: List[OrderLine] = []
    branch_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=500)


class PurchaseAwardResponse(BaseModel):
    points_awarded: int
    transaction: Optional[PointTransactionResponse] = None
