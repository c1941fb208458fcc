# backend/modules/loyalty/services/points_engine.py

"""
Loyalty points calculation.

Pure functions: the same configuration, item, amount, tier and quantity
always produce the same award, and nothing here touches the database.

Arithmetic is done in Decimal so that values such as ``1.4 / 0.05``
come out as exactly 28 rather than 27.999... before flooring.
"""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Dict, Iterable, Optional, Tuple

from ..models.loyalty_models import LoyaltyMode
from ..schemas.loyalty_schemas import (
    BlanketModeType,
    LoyaltyConfiguration,
    PointsCalculation,
)

# Blanket smart mode assumes this share of the order total is profit
ESTIMATED_PROFIT_MARGIN = Decimal("0.30")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def _to_decimal(value: Any) -> Decimal:
    """Convert a numeric value to Decimal; anything unusable becomes 0"""
    if value is None or isinstance(value, bool):
        return _ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return _ZERO
    if not result.is_finite():
        return _ZERO
    return result


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _item_field(menu_item: Any, name: str, default: Any = None) -> Any:
    if isinstance(menu_item, dict):
        return menu_item.get(name, default)
    return getattr(menu_item, name, default)


def _item_setting(menu_item: Any, name: str) -> Any:
    loyalty_settings = _item_field(menu_item, "loyalty_settings") or {}
    if isinstance(loyalty_settings, dict):
        return loyalty_settings.get(name)
    return getattr(loyalty_settings, name, None)


def _item_mode(menu_item: Any) -> str:
    mode = _item_field(menu_item, "loyalty_mode", LoyaltyMode.NONE.value)
    if isinstance(mode, LoyaltyMode):
        return mode.value
    return str(mode or LoyaltyMode.NONE.value).lower()


def _points_for_value(reward_value: Decimal, point_value: Decimal) -> int:
    if reward_value <= 0 or point_value <= 0:
        return 0
    return _floor(reward_value / point_value)


def _blanket_base_points(
    config: LoyaltyConfiguration, order_amount: Decimal
) -> Tuple[int, Dict[str, Any]]:
    blanket = config.blanket_mode
    point_value = _to_decimal(config.point_value)

    if blanket.type == BlanketModeType.SMART:
        allocation_percent = _to_decimal(blanket.smart_settings.profit_allocation_percent)
        estimated_profit = order_amount * ESTIMATED_PROFIT_MARGIN
        reward_value = max(estimated_profit * allocation_percent / _HUNDRED, _ZERO)
        base_points = _points_for_value(reward_value, point_value)
        return base_points, {
            "mode": "blanket_smart",
            "order_amount": float(order_amount),
            "estimated_profit": float(estimated_profit),
            "allocation_percent": float(allocation_percent),
            "reward_value": float(reward_value),
            "base_points": base_points,
        }

    # manual and spend share one flat-rate formula but keep separate rates
    if blanket.type == BlanketModeType.SPEND:
        rate = _to_decimal(blanket.spend_settings.points_per_currency)
    else:
        rate = _to_decimal(blanket.manual_settings.points_per_currency)
    base_points = max(_floor(order_amount * rate), 0)
    return base_points, {
        "mode": f"blanket_{blanket.type.value}",
        "order_amount": float(order_amount),
        "points_per_currency": float(rate),
        "base_points": base_points,
    }


def _item_base_points(
    config: LoyaltyConfiguration, menu_item: Any, quantity: int
) -> Tuple[int, Dict[str, Any]]:
    mode = _item_mode(menu_item)

    if mode == LoyaltyMode.SMART.value:
        cost_price = _to_decimal(_item_field(menu_item, "cost_price"))
        selling_price = _to_decimal(_item_field(menu_item, "selling_price"))
        allocation_percent = _to_decimal(_item_setting(menu_item, "profit_allocation_percent"))
        profit = max((selling_price - cost_price) * quantity, _ZERO)
        reward_value = max(profit * allocation_percent / _HUNDRED, _ZERO)
        base_points = _points_for_value(reward_value, _to_decimal(config.point_value))
        return base_points, {
            "mode": "item_smart",
            "cost_price": float(cost_price),
            "selling_price": float(selling_price),
            "quantity": quantity,
            "profit": float(profit),
            "allocation_percent": float(allocation_percent),
            "reward_value": float(reward_value),
            "base_points": base_points,
        }

    if mode == LoyaltyMode.MANUAL.value:
        fixed_points = max(_floor(_to_decimal(_item_setting(menu_item, "fixed_points"))), 0)
        base_points = fixed_points * quantity
        return base_points, {
            "mode": "item_manual",
            "fixed_points": fixed_points,
            "quantity": quantity,
            "base_points": base_points,
        }

    return 0, {"mode": "item_none", "base_points": 0}


def calculate_points(
    config: LoyaltyConfiguration,
    menu_item: Optional[Any] = None,
    order_amount: Any = 0,
    customer_tier: Optional[str] = "bronze",
    quantity: Any = 1,
) -> PointsCalculation:
    """
    Calculate the points a customer earns.

    Blanket mode, when enabled, ignores the menu item and works from the
    order amount. Otherwise the menu item's own loyalty mode applies. The
    base award is floored first, then multiplied by the tier multiplier
    and floored again.

    Args:
        config: Resolved restaurant configuration
        menu_item: ORM menu item, schema or dict; optional
        order_amount: Order total (item callers pass the selling price)
        customer_tier: Tier name; unknown tiers earn at 1.0
        quantity: Units of the menu item

    Returns:
        PointsCalculation with points, their currency value and a breakdown
    """
    amount = _to_decimal(order_amount)
    units = _floor(_to_decimal(quantity))
    multiplier = _to_decimal(config.tier_multipliers.for_tier(customer_tier))

    if amount <= 0 or units <= 0:
        base_points, breakdown = 0, {"mode": "none", "base_points": 0}
    elif config.blanket_mode.enabled:
        base_points, breakdown = _blanket_base_points(config, amount)
    elif menu_item is not None:
        base_points, breakdown = _item_base_points(config, menu_item, units)
    else:
        base_points, breakdown = 0, {"mode": "none", "base_points": 0}

    final_points = max(_floor(base_points * multiplier), 0)
    value = final_points * _to_decimal(config.point_value)

    breakdown.update(
        {
            "tier": str(getattr(customer_tier, "value", customer_tier) or ""),
            "tier_multiplier": float(multiplier),
            "final_points": final_points,
            "point_value": float(_to_decimal(config.point_value)),
        }
    )
    return PointsCalculation(
        points=final_points, value_in_currency=float(value), breakdown=breakdown
    )


def calculate_order_points(
    config: LoyaltyConfiguration,
    lines: Iterable[Tuple[Any, int]],
    customer_tier: Optional[str] = "bronze",
) -> PointsCalculation:
    """
    Sum the award over itemised order lines.

    Each line is a ``(menu_item, quantity)`` pair priced at the item's
    selling price.
    """
    total_points = 0
    line_breakdowns = []

    for menu_item, quantity in lines:
        units = _floor(_to_decimal(quantity))
        line_amount = _to_decimal(_item_field(menu_item, "selling_price")) * max(units, 0)
        result = calculate_points(config, menu_item, line_amount, customer_tier, units)
        total_points += result.points
        line_breakdowns.append(
            {
                "menu_item_id": _item_field(menu_item, "id"),
                "quantity": units,
                "points": result.points,
                "mode": result.breakdown["mode"],
            }
        )

    value = total_points * _to_decimal(config.point_value)
    return PointsCalculation(
        points=total_points,
        value_in_currency=float(value),
        breakdown={"mode": "order", "lines": line_breakdowns, "final_points": total_points},
    )
