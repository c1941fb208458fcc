# backend/modules/loyalty/services/redemption_service.py

"""
Reward redemption gate.

Preconditions are checked in a fixed order so the caller always gets the
most useful reason first: missing reward or customer, then balance, then
tier, then stock. The debit, the stock counter, the redemption record and
the ledger entry are committed together or not at all.
"""

from typing import Optional
import logging

from sqlalchemy import update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from core.database_retry import WriteTransaction
from core.error_handling import NotFoundError

from ..exceptions import InsufficientPointsError, SoldOutError, TierTooLowError
from ..models.loyalty_models import Customer, TransactionType, tier_rank
from ..models.rewards_models import RedemptionStatus, Reward, RewardRedemption
from .customer_service import CustomerService
from .point_ledger import PointLedgerService
from .reward_service import RewardService

logger = logging.getLogger(__name__)


def check_redemption_eligibility(customer: Customer, reward: Reward) -> None:
    """
    Raise the first failed redemption precondition, if any.

    Raises:
        InsufficientPointsError: balance below the reward's price
        TierTooLowError: customer tier below the reward's minimum tier
        SoldOutError: capped reward has no units left
    """
    if customer.total_points < reward.points_required:
        raise InsufficientPointsError(
            required=reward.points_required,
            available=customer.total_points,
            customer_id=customer.id,
        )

    if tier_rank(customer.current_tier) < tier_rank(reward.min_tier):
        raise TierTooLowError(required_tier=reward.min_tier, current_tier=customer.current_tier)

    if reward.is_sold_out:
        raise SoldOutError(reward_id=reward.id, total_available=reward.total_available)


class RedemptionService:
    """Exchanges customer points for rewards"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def redeem(
        self,
        restaurant_id: int,
        customer_id: int,
        reward_id: int,
        branch_id: Optional[int] = None,
    ) -> RewardRedemption:
        """
        Redeem a reward for a customer.

        Raises:
            NotFoundError: reward or customer missing, or reward inactive
            InsufficientPointsError: balance too low, including when a
                concurrent redemption spent the points first
            TierTooLowError: customer tier too low
            SoldOutError: reward cap reached
            TransientBackendError: the write failed; nothing was committed
        """
        reward = await RewardService(self.db).get_reward(restaurant_id, reward_id)
        if not reward.is_active:
            raise NotFoundError("Reward", reward_id)

        customer = await CustomerService(self.db).get_customer(restaurant_id, customer_id)

        try:
            check_redemption_eligibility(customer, reward)
        except (InsufficientPointsError, TierTooLowError, SoldOutError) as e:
            logger.warning(
                f"Redemption of reward {reward_id} by customer {customer_id} refused: {e.message}"
            )
            raise

        points_required = reward.points_required
        reward_name = reward.name

        async with WriteTransaction(self.db, "redeem_reward"):
            await PointLedgerService(self.db).apply(
                restaurant_id,
                customer.id,
                TransactionType.REDEMPTION,
                -points_required,
                description=f"Redeemed: {reward_name}",
                reward_id=reward_id,
                branch_id=branch_id,
            )

            stock = await self.db.execute(
                update(Reward)
                .where(
                    Reward.id == reward_id,
                    Reward.restaurant_id == restaurant_id,
                    or_(
                        Reward.total_available.is_(None),
                        Reward.total_redeemed < Reward.total_available,
                    ),
                )
                .values(total_redeemed=Reward.total_redeemed + 1)
                .execution_options(synchronize_session=False)
            )
            if stock.rowcount == 0:
                raise SoldOutError(reward_id=reward_id, total_available=reward.total_available)

            redemption = RewardRedemption(
                restaurant_id=restaurant_id,
                customer_id=customer.id,
                reward_id=reward_id,
                points_used=points_required,
                status=RedemptionStatus.PENDING.value,
            )
            self.db.add(redemption)

        await self.db.refresh(redemption)

        logger.info(
            f"Customer {customer.id} redeemed reward {reward_id} '{reward_name}' "
            f"for {points_required} points (redemption {redemption.id})"
        )
        return redemption
