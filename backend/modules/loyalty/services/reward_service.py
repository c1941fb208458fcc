# backend/modules/loyalty/services/reward_service.py

from typing import List, Optional
from datetime import datetime
import logging

from sqlalchemy import select, update, and_, case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.database_retry import WriteTransaction, with_read_retry
from core.error_handling import ConflictError, NotFoundError

from ..models.loyalty_models import tier_rank
from ..models.rewards_models import RedemptionStatus, Reward, RewardRedemption
from ..schemas.rewards_schemas import (
    PopularReward,
    RewardCreate,
    RewardStats,
    RewardUpdate,
)
from .customer_service import CustomerService

logger = logging.getLogger(__name__)

POPULAR_REWARDS_LIMIT = 5


class RewardService:
    """Reward catalog, redemption listing and redemption lifecycle"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========== Catalog ==========

    @with_read_retry()
    async def list_rewards(
        self, restaurant_id: int, active_only: bool = False
    ) -> List[Reward]:
        query = select(Reward).where(Reward.restaurant_id == restaurant_id)
        if active_only:
            query = query.where(Reward.is_active == True)
        result = await self.db.execute(query.order_by(Reward.points_required, Reward.id))
        return list(result.scalars().all())

    @with_read_retry()
    async def get_reward(self, restaurant_id: int, reward_id: int) -> Reward:
        result = await self.db.execute(
            select(Reward).where(
                and_(Reward.id == reward_id, Reward.restaurant_id == restaurant_id)
            )
        )
        reward = result.scalar_one_or_none()
        if reward is None:
            raise NotFoundError("Reward", reward_id)
        return reward

    async def get_available_rewards(
        self, restaurant_id: int, customer_id: int
    ) -> List[Reward]:
        """Active rewards the customer's tier allows that are still in stock"""
        customer = await CustomerService(self.db).get_customer(restaurant_id, customer_id)
        rewards = await self.list_rewards(restaurant_id, active_only=True)

        customer_rank = tier_rank(customer.current_tier)
        return [
            reward
            for reward in rewards
            if tier_rank(reward.min_tier) <= customer_rank and not reward.is_sold_out
        ]

    async def create_reward(self, restaurant_id: int, data: RewardCreate) -> Reward:
        reward = Reward(restaurant_id=restaurant_id, **data.model_dump(mode="json"))

        async with WriteTransaction(self.db, "create_reward"):
            self.db.add(reward)
        await self.db.refresh(reward)

        logger.info(f"Created reward {reward.id} '{reward.name}' for restaurant {restaurant_id}")
        return reward

    async def update_reward(
        self, restaurant_id: int, reward_id: int, data: RewardUpdate
    ) -> Reward:
        reward = await self.get_reward(restaurant_id, reward_id)
        changes = data.model_dump(mode="json", exclude_unset=True)

        cap = changes.get("total_available", reward.total_available)
        if cap is not None and cap < reward.total_redeemed:
            raise ConflictError(
                f"Cannot cap reward below the {reward.total_redeemed} units already redeemed",
                details={"total_redeemed": reward.total_redeemed, "total_available": cap},
            )

        async with WriteTransaction(self.db, "update_reward"):
            for field, value in changes.items():
                setattr(reward, field, value)
        await self.db.refresh(reward)

        logger.info(f"Updated reward {reward_id}: {sorted(changes)}")
        return reward

    async def delete_reward(self, restaurant_id: int, reward_id: int) -> None:
        reward = await self.get_reward(restaurant_id, reward_id)

        async with WriteTransaction(self.db, "delete_reward"):
            await self.db.delete(reward)

        logger.info(f"Deleted reward {reward_id} from restaurant {restaurant_id}")

    # ========== Redemptions ==========

    @with_read_retry()
    async def list_redemptions(
        self,
        restaurant_id: int,
        customer_id: Optional[int] = None,
        status: Optional[RedemptionStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[RewardRedemption]:
        """Redemptions newest first, with reward and customer loaded"""
        query = (
            select(RewardRedemption)
            .options(
                selectinload(RewardRedemption.reward),
                selectinload(RewardRedemption.customer),
            )
            .where(RewardRedemption.restaurant_id == restaurant_id)
        )
        if customer_id is not None:
            query = query.where(RewardRedemption.customer_id == customer_id)
        if status:
            query = query.where(RewardRedemption.status == status.value)

        result = await self.db.execute(
            query.order_by(RewardRedemption.redeemed_at.desc(), RewardRedemption.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_redemption_used(
        self, restaurant_id: int, redemption_id: int
    ) -> RewardRedemption:
        """
        Move a pending redemption to used.

        Raises:
            NotFoundError: no such redemption for the restaurant
            ConflictError: the redemption is already used or expired
        """
        async with WriteTransaction(self.db, "mark_redemption_used"):
            result = await self.db.execute(
                update(RewardRedemption)
                .where(
                    RewardRedemption.id == redemption_id,
                    RewardRedemption.restaurant_id == restaurant_id,
                    RewardRedemption.status == RedemptionStatus.PENDING.value,
                )
                .values(status=RedemptionStatus.USED.value, used_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = await self.db.execute(
                    select(RewardRedemption.status).where(
                        RewardRedemption.id == redemption_id,
                        RewardRedemption.restaurant_id == restaurant_id,
                    )
                )
                current_status = current.scalar_one_or_none()
                if current_status is None:
                    raise NotFoundError("RewardRedemption", redemption_id)
                raise ConflictError(
                    f"Redemption {redemption_id} is {current_status} and cannot be marked used",
                    details={
                        "current_status": current_status,
                        "requested_status": RedemptionStatus.USED.value,
                    },
                )

        redemption = await self.db.get(RewardRedemption, redemption_id, populate_existing=True)
        logger.info(f"Redemption {redemption_id} marked used")
        return redemption

    async def expire_redemptions(self, restaurant_id: int, older_than: datetime) -> int:
        """Expire pending redemptions made before ``older_than``; returns how many"""
        async with WriteTransaction(self.db, "expire_redemptions"):
            result = await self.db.execute(
                update(RewardRedemption)
                .where(
                    RewardRedemption.restaurant_id == restaurant_id,
                    RewardRedemption.status == RedemptionStatus.PENDING.value,
                    RewardRedemption.redeemed_at < older_than,
                )
                .values(status=RedemptionStatus.EXPIRED.value)
                .execution_options(synchronize_session=False)
            )
            expired = result.rowcount

        logger.info(
            f"Expired {expired} pending redemptions older than {older_than.isoformat()} "
            f"for restaurant {restaurant_id}"
        )
        return expired

    # ========== Statistics ==========

    @with_read_retry()
    async def get_reward_stats(self, restaurant_id: int) -> RewardStats:
        totals = await self.db.execute(
            select(
                func.count(Reward.id),
                func.coalesce(func.sum(case((Reward.is_active == True, 1), else_=0)), 0),
                func.coalesce(func.sum(Reward.total_redeemed), 0),
            ).where(Reward.restaurant_id == restaurant_id)
        )
        total_rewards, active_rewards, total_redemptions = totals.one()

        popular = await self.db.execute(
            select(Reward.id, Reward.name, Reward.total_redeemed)
            .where(Reward.restaurant_id == restaurant_id)
            .order_by(Reward.total_redeemed.desc(), Reward.id)
            .limit(POPULAR_REWARDS_LIMIT)
        )

        return RewardStats(
            total_rewards=total_rewards,
            active_rewards=int(active_rewards),
            total_redemptions=int(total_redemptions),
            popular_rewards=[
                PopularReward(reward_id=row.id, name=row.name, redemptions=row.total_redeemed)
                for row in popular
            ],
        )
