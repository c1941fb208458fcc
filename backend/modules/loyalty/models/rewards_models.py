# backend/modules/loyalty/models/rewards_models.py

from sqlalchemy import (Column, Integer, String, ForeignKey, DateTime,
                        Text, Boolean, Index, CheckConstraint)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
from core.mixins import TimestampMixin
from enum import Enum


class RedemptionStatus(str, Enum):
    """Lifecycle of a reward redemption"""
    PENDING = "pending"  # Points debited, reward not yet handed over
    USED = "used"        # Staff marked the reward as consumed
    EXPIRED = "expired"  # Never collected


class Reward(Base, TimestampMixin):
    """Reward a customer can exchange points for"""
    __tablename__ = "rewards"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, default="food")
    image_url = Column(String(500), nullable=True)

    points_required = Column(Integer, nullable=False)
    min_tier = Column(String(20), nullable=False, default="bronze")

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Optional stock cap; NULL means unlimited
    total_available = Column(Integer, nullable=True)
    total_redeemed = Column(Integer, nullable=False, default=0)

    redemptions = relationship("RewardRedemption", back_populates="reward", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("points_required > 0", name="rewards_points_required_positive"),
        CheckConstraint("total_redeemed >= 0", name="rewards_total_redeemed_non_negative"),
        CheckConstraint(
            "total_available IS NULL OR total_redeemed <= total_available",
            name="rewards_total_redeemed_within_cap",
        ),
        CheckConstraint(
            "min_tier IN ('bronze', 'silver', 'gold', 'platinum')", name="rewards_min_tier_valid"
        ),
        Index("ix_rewards_restaurant_active", "restaurant_id", "is_active"),
    )

    @property
    def is_sold_out(self) -> bool:
        return self.total_available is not None and self.total_redeemed >= self.total_available

    def __repr__(self):
        return f"<Reward(id={self.id}, name='{self.name}', points_required={self.points_required})>"


class RewardRedemption(Base):
    """Record of points exchanged for a reward"""
    __tablename__ = "reward_redemptions"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    reward_id = Column(Integer, ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False, index=True)

    points_used = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=RedemptionStatus.PENDING.value)
    redeemed_at = Column(DateTime, nullable=False, default=func.now())
    used_at = Column(DateTime, nullable=True)

    reward = relationship("Reward", back_populates="redemptions")
    customer = relationship("Customer")

    __table_args__ = (
        CheckConstraint("points_used > 0", name="reward_redemptions_points_used_positive"),
        CheckConstraint(
            "status IN ('pending', 'used', 'expired')", name="reward_redemptions_status_valid"
        ),
        Index("ix_reward_redemptions_status_redeemed", "status", "redeemed_at"),
    )

    def __repr__(self):
        return f"<RewardRedemption(id={self.id}, reward_id={self.reward_id}, status='{self.status}')>"
