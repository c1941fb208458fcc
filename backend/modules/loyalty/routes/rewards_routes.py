# backend/modules/loyalty/routes/rewards_routes.py

"""
Routes for the reward catalog and reward redemptions.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime, timedelta

from core.database import get_async_db
from core.error_handling import handle_api_errors

from ..models.rewards_models import RedemptionStatus
from ..services.redemption_service import RedemptionService
from ..services.reward_service import RewardService
from ..schemas.rewards_schemas import (
    RewardCreate,
    RewardUpdate,
    RewardResponse,
    RewardStats,
    RedemptionRequest,
    RedemptionResponse,
    RedemptionDetailResponse,
    RedemptionExpireRequest,
    RedemptionExpireResponse,
)

router = APIRouter(prefix="/api/v1/restaurants/{restaurant_id}", tags=["Rewards"])


# ========== Reward Catalog ==========


@router.get("/rewards", response_model=List[RewardResponse])
@handle_api_errors
async def list_rewards(
    restaurant_id: int,
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_async_db),
):
    """List the restaurant's rewards, cheapest first"""
    return await RewardService(db).list_rewards(restaurant_id, active_only=active_only)


@router.post("/rewards", response_model=RewardResponse, status_code=status.HTTP_201_CREATED)
@handle_api_errors
async def create_reward(
    restaurant_id: int,
    data: RewardCreate,
    db: AsyncSession = Depends(get_async_db),
):
    return await RewardService(db).create_reward(restaurant_id, data)


@router.get("/rewards/stats", response_model=RewardStats)
@handle_api_errors
async def get_reward_stats(restaurant_id: int, db: AsyncSession = Depends(get_async_db)):
    """
    Catalog size, total redemptions and the five most redeemed rewards.
    """
    return await RewardService(db).get_reward_stats(restaurant_id)


@router.patch("/rewards/{reward_id}", response_model=RewardResponse)
@handle_api_errors
async def update_reward(
    restaurant_id: int,
    reward_id: int,
    data: RewardUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Raises:
        404: Reward not found
        409: Cap below the units already redeemed
    """
    return await RewardService(db).update_reward(restaurant_id, reward_id, data)


@router.delete("/rewards/{reward_id}", status_code=status.HTTP_204_NO_CONTENT)
@handle_api_errors
async def delete_reward(
    restaurant_id: int,
    reward_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    await RewardService(db).delete_reward(restaurant_id, reward_id)


@router.get("/customers/{customer_id}/available-rewards", response_model=List[RewardResponse])
@handle_api_errors
async def get_available_rewards(
    restaurant_id: int,
    customer_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Rewards the customer's tier allows that are active and in stock.

    Raises:
        404: Customer not found
    """
    return await RewardService(db).get_available_rewards(restaurant_id, customer_id)


# ========== Redemptions ==========


@router.post(
    "/rewards/{reward_id}/redeem",
    response_model=RedemptionResponse,
    status_code=status.HTTP_201_CREATED,
)
@handle_api_errors
async def redeem_reward(
    restaurant_id: int,
    reward_id: int,
    request: RedemptionRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Exchange a customer's points for a reward.

    Raises:
        403: Customer tier below the reward's minimum tier
        404: Reward or customer not found, or reward inactive
        409: Insufficient points, or reward sold out
        503: Database unavailable; no points were spent
    """
    return await RedemptionService(db).redeem(
        restaurant_id, request.customer_id, reward_id, branch_id=request.branch_id
    )


@router.get("/redemptions", response_model=List[RedemptionDetailResponse])
@handle_api_errors
async def list_redemptions(
    restaurant_id: int,
    customer_id: Optional[int] = Query(None),
    redemption_status: Optional[RedemptionStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
):
    """List redemptions, newest first"""
    redemptions = await RewardService(db).list_redemptions(
        restaurant_id,
        customer_id=customer_id,
        status=redemption_status,
        skip=skip,
        limit=limit,
    )
    return [
        RedemptionDetailResponse(
            **RedemptionResponse.model_validate(redemption).model_dump(),
            reward_name=redemption.reward.name,
            customer_name=redemption.customer.full_name,
            customer_email=redemption.customer.email,
        )
        for redemption in redemptions
    ]


@router.post("/redemptions/expire", response_model=RedemptionExpireResponse)
@handle_api_errors
async def expire_redemptions(
    restaurant_id: int,
    request: RedemptionExpireRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """Expire pending redemptions older than the given number of days"""
    cutoff = datetime.utcnow() - timedelta(days=request.older_than_days)
    expired = await RewardService(db).expire_redemptions(restaurant_id, cutoff)
    return RedemptionExpireResponse(expired=expired)


@router.post("/redemptions/{redemption_id}/use", response_model=RedemptionResponse)
@handle_api_errors
async def mark_redemption_used(
    restaurant_id: int,
    redemption_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Mark a pending redemption as handed over to the customer.

    Raises:
        404: Redemption not found
        409: Redemption already used or expired
    """
    return await RewardService(db).mark_redemption_used(restaurant_id, redemption_id)
