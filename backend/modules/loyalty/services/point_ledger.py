# backend/modules/loyalty/services/point_ledger.py

"""
Point ledger.

Every balance change goes through ``PointLedgerService.apply``: one
conditional UPDATE on the customer row plus one appended ledger entry.
Balances are never read, changed in Python and written back.
"""

from decimal import Decimal, ROUND_FLOOR
from typing import List, Optional, Tuple, Union
import logging

from sqlalchemy import update, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database_retry import WriteTransaction
from core.error_handling import APIValidationError, NotFoundError

from ..exceptions import InsufficientPointsError
from ..models.loyalty_models import Customer, CustomerTier, PointTransaction, TransactionType
from ..schemas.loyalty_schemas import OrderLine
from .customer_service import CustomerService
from .loyalty_config import LoyaltyConfigService
from .menu_service import MenuItemService
from .points_engine import calculate_order_points, calculate_points

logger = logging.getLogger(__name__)

# Lifetime points needed to reach each tier
SILVER_THRESHOLD = 500
GOLD_THRESHOLD = 1000


def _percent(part: int, whole: int) -> int:
    """Whole-number percentage, rounded half up"""
    return (part * 200 + whole) // (whole * 2)


def compute_tier(lifetime_points: int) -> Tuple[str, int]:
    """
    Tier and progress (0-100) towards the next tier for a lifetime total.

    Progress is rounded to the nearest whole percent, so a total just short
    of a threshold can show 100 before the tier changes. Gold progress keeps
    counting towards a further 1000 points and caps at 100.
    """
    lifetime_points = max(int(lifetime_points or 0), 0)

    if lifetime_points >= GOLD_THRESHOLD:
        progress = min(100, _percent(lifetime_points - GOLD_THRESHOLD, 1000))
        return CustomerTier.GOLD.value, progress
    if lifetime_points >= SILVER_THRESHOLD:
        progress = _percent(lifetime_points - SILVER_THRESHOLD, GOLD_THRESHOLD - SILVER_THRESHOLD)
        return CustomerTier.SILVER.value, progress
    return CustomerTier.BRONZE.value, _percent(lifetime_points, SILVER_THRESHOLD)


class PointLedgerService:
    """Service for all point balance changes"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def apply(
        self,
        restaurant_id: int,
        customer_id: int,
        transaction_type: Union[TransactionType, str],
        points: int,
        description: Optional[str] = None,
        amount_spent: Optional[float] = None,
        reward_id: Optional[int] = None,
        branch_id: Optional[int] = None,
    ) -> PointTransaction:
        """
        Stage a balance change and its ledger entry in the current transaction.

        Does not commit; callers wrap it in a WriteTransaction together with
        any other rows that must land atomically with it.

        Raises:
            APIValidationError: points is zero, or its sign does not match the type
            InsufficientPointsError: a debit exceeds the current balance
            NotFoundError: the customer does not belong to the restaurant
        """
        if not points:
            raise APIValidationError(
                "Point transactions must change the balance",
                errors={"points": "must be non-zero"},
            )

        transaction_type = TransactionType(transaction_type)
        if transaction_type == TransactionType.REDEMPTION and points > 0:
            raise APIValidationError(
                "Redemptions must debit points",
                errors={"points": "must be negative for redemption"},
            )
        if transaction_type != TransactionType.REDEMPTION and points < 0:
            raise APIValidationError(
                f"{transaction_type.value.capitalize()} transactions must award points",
                errors={"points": f"must be positive for {transaction_type.value}"},
            )

        spent = Decimal(str(amount_spent)) if amount_spent else Decimal("0")

        values = {
            "total_points": Customer.total_points + points,
            "total_spent": Customer.total_spent + spent,
        }
        if points > 0:
            values["lifetime_points"] = Customer.lifetime_points + points
        if transaction_type == TransactionType.PURCHASE:
            values["visit_count"] = Customer.visit_count + 1
            values["last_visit"] = func.now()

        stmt = update(Customer).where(
            Customer.id == customer_id, Customer.restaurant_id == restaurant_id
        )
        if points < 0:
            # Conditional debit: matches no row when the balance is too low
            stmt = stmt.where(Customer.total_points >= -points)

        result = await self.db.execute(
            stmt.values(**values)
            .returning(Customer.lifetime_points)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            if points < 0:
                raise InsufficientPointsError(required=-points, customer_id=customer_id)
            raise NotFoundError("Customer", customer_id)

        tier, progress = compute_tier(row[0])
        await self.db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(current_tier=tier, tier_progress=progress)
            .execution_options(synchronize_session=False)
        )

        transaction = PointTransaction(
            restaurant_id=restaurant_id,
            customer_id=customer_id,
            branch_id=branch_id,
            type=transaction_type.value,
            points=points,
            amount_spent=spent if amount_spent else None,
            description=description,
            reward_id=reward_id,
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def process_point_transaction(
        self,
        restaurant_id: int,
        customer_id: int,
        transaction_type: Union[TransactionType, str],
        points: int,
        description: Optional[str] = None,
        amount_spent: Optional[float] = None,
        reward_id: Optional[int] = None,
        branch_id: Optional[int] = None,
    ) -> PointTransaction:
        """Apply one balance change and commit it. Never retried."""
        async with WriteTransaction(self.db, "process_point_transaction"):
            transaction = await self.apply(
                restaurant_id,
                customer_id,
                transaction_type,
                points,
                description=description,
                amount_spent=amount_spent,
                reward_id=reward_id,
                branch_id=branch_id,
            )
        await self.db.refresh(transaction)

        logger.info(
            f"Recorded {transaction.type} of {points} points for customer {customer_id} "
            f"at restaurant {restaurant_id}"
        )
        return transaction

    async def award_purchase_points(
        self,
        restaurant_id: int,
        customer_id: int,
        amount_spent: float,
        lines: Optional[List[OrderLine]] = None,
        branch_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Optional[PointTransaction]:
        """
        Award points for a purchase.

        Itemised orders are priced per line. Otherwise blanket mode applies
        when enabled, and the fallback rate when it is not. Returns None when
        the purchase earns no points.
        """
        customer = await CustomerService(self.db).get_customer(restaurant_id, customer_id)
        config = await LoyaltyConfigService(self.db).get_config(restaurant_id)

        if lines:
            items = await MenuItemService(self.db).get_menu_items_by_ids(
                restaurant_id, [line.menu_item_id for line in lines]
            )
            calculation = calculate_order_points(
                config,
                [(items[line.menu_item_id], line.quantity) for line in lines],
                customer.current_tier,
            )
            points = calculation.points
        elif config.blanket_mode.enabled:
            points = calculate_points(
                config, None, amount_spent, customer.current_tier, 1
            ).points
        else:
            rate = Decimal(str(settings.fallback_points_per_currency))
            amount = Decimal(str(amount_spent or 0))
            points = int((amount * rate).to_integral_value(rounding=ROUND_FLOOR))

        if points <= 0:
            logger.info(
                f"Purchase of {amount_spent} by customer {customer_id} earned no points"
            )
            return None

        return await self.process_point_transaction(
            restaurant_id,
            customer.id,
            TransactionType.PURCHASE,
            points,
            description=description or f"Purchase of {float(amount_spent):.2f}",
            amount_spent=amount_spent,
            branch_id=branch_id,
        )
