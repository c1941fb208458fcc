# backend/tests/modules/loyalty/test_reward_service.py

"""
Tests for the reward catalog and the redemption lifecycle.
"""

import pytest
from datetime import datetime, timedelta

from core.error_handling import ConflictError, NotFoundError
from modules.loyalty.models import CustomerTier, RedemptionStatus, RewardRedemption
from modules.loyalty.schemas.rewards_schemas import RewardCreate, RewardUpdate
from modules.loyalty.services.redemption_service import RedemptionService
from modules.loyalty.services.reward_service import RewardService


class TestRewardCatalog:
    """Catalog management"""

    @pytest.mark.asyncio
    async def test_list_rewards_cheapest_first(self, db_session, seed):
        rewards = await RewardService(db_session).list_rewards(seed.restaurant_id)

        assert [r.name for r in rewards][0] == "Old Mug"
        assert len(rewards) == 4

        active = await RewardService(db_session).list_rewards(seed.restaurant_id, active_only=True)
        assert seed.retired_id not in [r.id for r in active]

    @pytest.mark.asyncio
    async def test_available_rewards_for_bronze_customer(self, db_session, seed):
        rewards = await RewardService(db_session).get_available_rewards(
            seed.restaurant_id, seed.alice_id
        )

        assert [r.id for r in rewards] == [seed.coffee_id]

    @pytest.mark.asyncio
    async def test_available_rewards_for_silver_customer(self, db_session, seed):
        rewards = await RewardService(db_session).get_available_rewards(
            seed.restaurant_id, seed.carol_id
        )

        assert sorted(r.id for r in rewards) == sorted([seed.coffee_id, seed.dessert_id])

    @pytest.mark.asyncio
    async def test_available_rewards_unknown_customer(self, db_session, seed):
        with pytest.raises(NotFoundError):
            await RewardService(db_session).get_available_rewards(seed.restaurant_id, 9999)

    @pytest.mark.asyncio
    async def test_create_update_and_delete_reward(self, db_session, seed):
        service = RewardService(db_session)

        reward = await service.create_reward(
            seed.restaurant_id,
            RewardCreate(
                name="VIP Tasting",
                points_required=800,
                min_tier=CustomerTier.GOLD,
                total_available=10,
            ),
        )
        assert reward.id is not None
        assert reward.min_tier == "gold"
        assert reward.total_redeemed == 0

        updated = await service.update_reward(
            seed.restaurant_id, reward.id, RewardUpdate(points_required=750, is_active=False)
        )
        assert updated.points_required == 750
        assert updated.is_active is False
        assert updated.total_available == 10

        await service.delete_reward(seed.restaurant_id, reward.id)
        with pytest.raises(NotFoundError):
            await service.get_reward(seed.restaurant_id, reward.id)

    @pytest.mark.asyncio
    async def test_cap_below_redeemed_units_is_refused(self, db_session, seed):
        with pytest.raises(ConflictError):
            await RewardService(db_session).update_reward(
                seed.restaurant_id, seed.limited_id, RewardUpdate(total_available=0)
            )

    @pytest.mark.asyncio
    async def test_raising_cap_restocks_reward(self, db_session, seed):
        reward = await RewardService(db_session).update_reward(
            seed.restaurant_id, seed.limited_id, RewardUpdate(total_available=5)
        )

        assert reward.is_sold_out is False

    @pytest.mark.asyncio
    async def test_reward_stats(self, db_session, seed):
        stats = await RewardService(db_session).get_reward_stats(seed.restaurant_id)

        assert stats.total_rewards == 4
        assert stats.active_rewards == 3
        assert stats.total_redemptions == 1
        assert stats.popular_rewards[0].reward_id == seed.limited_id
        assert stats.popular_rewards[0].redemptions == 1

    @pytest.mark.asyncio
    async def test_reward_stats_empty_restaurant(self, db_session, seed):
        stats = await RewardService(db_session).get_reward_stats(seed.other_restaurant_id)

        assert stats.total_rewards == 0
        assert stats.active_rewards == 0
        assert stats.total_redemptions == 0
        assert stats.popular_rewards == []


class TestRedemptionLifecycle:
    """Pending, used and expired redemptions"""

    @pytest.mark.asyncio
    async def test_mark_used(self, db_session, seed):
        redemption = await RedemptionService(db_session).redeem(
            seed.restaurant_id, seed.alice_id, seed.coffee_id
        )

        used = await RewardService(db_session).mark_redemption_used(
            seed.restaurant_id, redemption.id
        )

        assert used.status == RedemptionStatus.USED.value
        assert used.used_at is not None

    @pytest.mark.asyncio
    async def test_mark_used_twice_conflicts(self, db_session, seed):
        redemption = await RedemptionService(db_session).redeem(
            seed.restaurant_id, seed.alice_id, seed.coffee_id
        )
        service = RewardService(db_session)
        await service.mark_redemption_used(seed.restaurant_id, redemption.id)

        with pytest.raises(ConflictError) as exc_info:
            await service.mark_redemption_used(seed.restaurant_id, redemption.id)

        assert exc_info.value.details["current_status"] == "used"

    @pytest.mark.asyncio
    async def test_mark_used_unknown_redemption(self, db_session, seed):
        with pytest.raises(NotFoundError):
            await RewardService(db_session).mark_redemption_used(seed.restaurant_id, 9999)

    @pytest.mark.asyncio
    async def test_expire_old_pending_redemptions(self, db_session, seed):
        redemption = await RedemptionService(db_session).redeem(
            seed.restaurant_id, seed.alice_id, seed.coffee_id
        )
        service = RewardService(db_session)

        assert await service.expire_redemptions(
            seed.restaurant_id, datetime.utcnow() - timedelta(days=1)
        ) == 0
        assert await service.expire_redemptions(
            seed.restaurant_id, datetime.utcnow() + timedelta(days=1)
        ) == 1

        expired = await db_session.get(RewardRedemption, redemption.id, populate_existing=True)
        assert expired.status == RedemptionStatus.EXPIRED.value

        with pytest.raises(ConflictError):
            await service.mark_redemption_used(seed.restaurant_id, redemption.id)

    @pytest.mark.asyncio
    async def test_list_redemptions_with_filters(self, db_session, seed):
        redemption_service = RedemptionService(db_session)
        first = await redemption_service.redeem(seed.restaurant_id, seed.alice_id, seed.coffee_id)
        second = await redemption_service.redeem(seed.restaurant_id, seed.carol_id, seed.dessert_id)
        service = RewardService(db_session)
        await service.mark_redemption_used(seed.restaurant_id, first.id)

        everything = await service.list_redemptions(seed.restaurant_id)
        assert [r.id for r in everything] == [second.id, first.id]
        assert everything[0].reward.name == "Chef's Dessert"
        assert everything[0].customer.email == "carol@example.com"

        pending = await service.list_redemptions(
            seed.restaurant_id, status=RedemptionStatus.PENDING
        )
        assert [r.id for r in pending] == [second.id]

        alices = await service.list_redemptions(seed.restaurant_id, customer_id=seed.alice_id)
        assert [r.id for r in alices] == [first.id]
