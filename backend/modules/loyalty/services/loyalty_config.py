# backend/modules/loyalty/services/loyalty_config.py

"""
Restaurant loyalty configuration.

``resolve_config`` is the only parser of the ``restaurants.settings`` blob
and ``LoyaltyConfiguration.to_settings`` is the only writer. Reads are
cached per restaurant and the cache entry is dropped on every write.
"""

import copy
import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database_retry import WriteTransaction, with_read_retry
from core.error_handling import NotFoundError
from core.memory_cache import LRUCache

from ..models.loyalty_models import Restaurant
from ..schemas.loyalty_schemas import (
    DEFAULT_MANUAL_POINTS_PER_CURRENCY,
    DEFAULT_POINT_VALUE,
    DEFAULT_PROFIT_ALLOCATION_PERCENT,
    DEFAULT_SPEND_POINTS_PER_CURRENCY,
    DEFAULT_TIER_MULTIPLIERS,
    MANUAL_POINTS_PER_CURRENCY_RANGE,
    MIN_TIER_MULTIPLIER,
    PROFIT_ALLOCATION_PERCENT_RANGE,
    SPEND_POINTS_PER_CURRENCY_RANGE,
    BlanketMode,
    BlanketModeType,
    FlatRateSettings,
    LoyaltyConfigUpdate,
    LoyaltyConfiguration,
    PointsCalculation,
    PointsPreviewRequest,
    SmartSettings,
    TierMultipliers,
)
from .menu_service import MenuItemService
from .points_engine import calculate_points

logger = logging.getLogger(__name__)

# Accepted spellings per field: stored snake_case, dashboard camelCase, legacy AED names
POINT_VALUE_KEYS = ("point_value", "pointValueCurrency", "pointValue", "pointValueAED")
BLANKET_MODE_KEYS = ("blanket_mode", "blanketMode")
TIER_MULTIPLIER_KEYS = ("tier_multipliers", "tierMultipliers")
SMART_SETTINGS_KEYS = ("smart_settings", "smartSettings")
MANUAL_SETTINGS_KEYS = ("manual_settings", "manualSettings")
SPEND_SETTINGS_KEYS = ("spend_settings", "spendSettings")
PROFIT_ALLOCATION_KEYS = ("profit_allocation_percent", "profitAllocationPercent")
POINTS_PER_CURRENCY_KEYS = ("points_per_currency", "pointsPerCurrency", "pointsPerAED")

LOYALTY_SETTINGS_KEYS = frozenset(POINT_VALUE_KEYS + BLANKET_MODE_KEYS + TIER_MULTIPLIER_KEYS)

config_cache = LRUCache(
    max_size=settings.loyalty_config_cache_max_size,
    ttl_seconds=settings.loyalty_config_cache_ttl_seconds,
)


def _lookup(raw: Any, keys) -> Any:
    if not isinstance(raw, dict):
        return None
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _positive_number(value: Any, default: float) -> float:
    """Numeric value, or the default when missing, non-numeric or not positive"""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return number


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _blanket_type(value: Any) -> BlanketModeType:
    try:
        return BlanketModeType(str(value).lower())
    except ValueError:
        return BlanketModeType.SMART


def _flat_rate(raw: Any, default: float, bounds) -> FlatRateSettings:
    rate = _positive_number(_lookup(raw, POINTS_PER_CURRENCY_KEYS), default)
    return FlatRateSettings(points_per_currency=_clamp(rate, *bounds))


def resolve_config(raw_settings: Optional[Dict[str, Any]]) -> LoyaltyConfiguration:
    """
    Resolve a stored settings blob into a complete configuration.

    Total over any input: every field is defaulted independently, numbers
    outside their range are clamped into it and unknown blanket types fall
    back to smart. Never raises.
    """
    raw = raw_settings if isinstance(raw_settings, dict) else {}
    blanket_raw = _lookup(raw, BLANKET_MODE_KEYS)
    tiers_raw = _lookup(raw, TIER_MULTIPLIER_KEYS)

    allocation = _positive_number(
        _lookup(_lookup(blanket_raw, SMART_SETTINGS_KEYS), PROFIT_ALLOCATION_KEYS),
        DEFAULT_PROFIT_ALLOCATION_PERCENT,
    )
    allocation = int(round(_clamp(allocation, *PROFIT_ALLOCATION_PERCENT_RANGE)))

    blanket_mode = BlanketMode(
        enabled=_as_bool(_lookup(blanket_raw, ("enabled",))),
        type=_blanket_type(_lookup(blanket_raw, ("type",))),
        smart_settings=SmartSettings(profit_allocation_percent=allocation),
        manual_settings=_flat_rate(
            _lookup(blanket_raw, MANUAL_SETTINGS_KEYS),
            DEFAULT_MANUAL_POINTS_PER_CURRENCY,
            MANUAL_POINTS_PER_CURRENCY_RANGE,
        ),
        spend_settings=_flat_rate(
            _lookup(blanket_raw, SPEND_SETTINGS_KEYS),
            DEFAULT_SPEND_POINTS_PER_CURRENCY,
            SPEND_POINTS_PER_CURRENCY_RANGE,
        ),
    )

    tier_multipliers = TierMultipliers(
        **{
            tier: max(_positive_number(_lookup(tiers_raw, (tier,)), default), MIN_TIER_MULTIPLIER)
            for tier, default in DEFAULT_TIER_MULTIPLIERS.items()
        }
    )

    return LoyaltyConfiguration(
        point_value=_positive_number(_lookup(raw, POINT_VALUE_KEYS), DEFAULT_POINT_VALUE),
        blanket_mode=blanket_mode,
        tier_multipliers=tier_multipliers,
    )


def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class LoyaltyConfigService:
    """Service for reading, updating and previewing restaurant loyalty configuration"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @with_read_retry()
    async def _load_settings(self, restaurant_id: int) -> Dict[str, Any]:
        result = await self.db.execute(
            select(Restaurant.settings).where(Restaurant.id == restaurant_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Restaurant", restaurant_id)
        return row[0] or {}

    async def get_config(self, restaurant_id: int) -> LoyaltyConfiguration:
        """Get the resolved configuration, served from cache when fresh"""

        async def load() -> LoyaltyConfiguration:
            return resolve_config(await self._load_settings(restaurant_id))

        return await config_cache.get_or_load(restaurant_id, load)

    async def update_config(
        self, restaurant_id: int, update: LoyaltyConfigUpdate
    ) -> LoyaltyConfiguration:
        """
        Merge a partial update into the stored configuration.

        Settings keys that are not part of the loyalty configuration are
        preserved. Legacy camelCase keys are rewritten in snake_case.
        """
        async with WriteTransaction(self.db, "update_loyalty_config"):
            restaurant = await self.db.get(Restaurant, restaurant_id)
            if restaurant is None:
                raise NotFoundError("Restaurant", restaurant_id)

            stored = dict(restaurant.settings or {})
            current = resolve_config(stored).to_settings()
            config = resolve_config(
                _deep_merge(current, update.model_dump(mode="json", exclude_none=True))
            )

            new_settings = {
                key: value for key, value in stored.items() if key not in LOYALTY_SETTINGS_KEYS
            }
            new_settings.update(config.to_settings())
            # Reassign so the JSON column is flagged dirty
            restaurant.settings = new_settings

        await config_cache.delete(restaurant_id)
        logger.info(f"Updated loyalty configuration for restaurant {restaurant_id}")
        return config

    async def preview(
        self, restaurant_id: int, request: PointsPreviewRequest
    ) -> PointsCalculation:
        """
        What-if calculation for a stored or inline menu item. Writes nothing.

        When an item is given without an order amount, the item is priced at
        its selling price times the quantity.
        """
        config = await self.get_config(restaurant_id)

        menu_item = request.menu_item
        if request.menu_item_id is not None:
            menu_item = await MenuItemService(self.db).get_menu_item(
                restaurant_id, request.menu_item_id
            )

        order_amount = request.order_amount
        if menu_item is not None and order_amount == 0:
            order_amount = float(menu_item.selling_price or 0) * request.quantity

        return calculate_points(
            config,
            menu_item,
            order_amount,
            request.customer_tier.value,
            request.quantity,
        )
