# backend/modules/loyalty/models/loyalty_models.py

"""
Loyalty program models
"""

from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Numeric,
    JSON,
    Text,
    CheckConstraint,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
from core.mixins import TimestampMixin


class CustomerTier(str, Enum):
    """Customer loyalty tiers, lowest first"""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


TIER_RANKS = {
    CustomerTier.BRONZE.value: 0,
    CustomerTier.SILVER.value: 1,
    CustomerTier.GOLD.value: 2,
    CustomerTier.PLATINUM.value: 3,
}


def tier_rank(tier) -> int:
    """Rank of a tier name; unknown tiers rank as bronze"""
    key = getattr(tier, "value", tier)
    return TIER_RANKS.get(str(key or "").lower(), 0)


class LoyaltyMode(str, Enum):
    """Per-menu-item point award mode"""
    SMART = "smart"    # Percentage of the item's profit
    MANUAL = "manual"  # Fixed points per unit
    NONE = "none"      # No points


class TransactionType(str, Enum):
    """Point ledger entry types"""
    PURCHASE = "purchase"
    REDEMPTION = "redemption"
    BONUS = "bonus"
    REFERRAL = "referral"
    SIGNUP = "signup"


class Restaurant(Base, TimestampMixin):
    """Restaurant owning a loyalty program; settings holds the loyalty configuration blob"""
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    settings = Column(JSON, nullable=False, default=dict)

    customers = relationship("Customer", back_populates="restaurant", cascade="all, delete-orphan")
    menu_items = relationship("MenuItem", back_populates="restaurant", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Restaurant(id={self.id}, name='{self.name}')>"


class Customer(Base, TimestampMixin):
    """Loyalty member of one restaurant"""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    # Balances are only ever changed through the point ledger
    total_points = Column(Integer, nullable=False, default=0)
    lifetime_points = Column(Integer, nullable=False, default=0)
    current_tier = Column(String(20), nullable=False, default=CustomerTier.BRONZE.value)
    tier_progress = Column(Integer, nullable=False, default=0)

    visit_count = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(10, 2), nullable=False, default=0)
    last_visit = Column(DateTime, nullable=True)

    restaurant = relationship("Restaurant", back_populates="customers")
    transactions = relationship("PointTransaction", back_populates="customer", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("restaurant_id", "email", name="uq_customers_restaurant_email"),
        CheckConstraint("total_points >= 0", name="customers_total_points_non_negative"),
        CheckConstraint("lifetime_points >= 0", name="customers_lifetime_points_non_negative"),
        CheckConstraint(
            "current_tier IN ('bronze', 'silver', 'gold')", name="customers_tier_valid"
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Customer(id={self.id}, email='{self.email}', points={self.total_points})>"


class MenuItem(Base, TimestampMixin):
    """Menu item with its per-item loyalty rule"""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, default="main")

    cost_price = Column(Numeric(10, 2), nullable=False, default=0)
    selling_price = Column(Numeric(10, 2), nullable=False, default=0)

    loyalty_mode = Column(String(20), nullable=False, default=LoyaltyMode.NONE.value)
    # e.g. {"profit_allocation_percent": 20} or {"fixed_points": 10}
    loyalty_settings = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="menu_items")

    __table_args__ = (
        CheckConstraint("cost_price >= 0", name="menu_items_cost_price_non_negative"),
        CheckConstraint("selling_price >= 0", name="menu_items_selling_price_non_negative"),
        CheckConstraint(
            "loyalty_mode IN ('smart', 'manual', 'none')", name="menu_items_loyalty_mode_valid"
        ),
    )

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', mode='{self.loyalty_mode}')>"


class PointTransaction(Base):
    """Append-only point ledger entry"""
    __tablename__ = "point_transactions"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    branch_id = Column(Integer, nullable=True)

    type = Column(String(20), nullable=False)
    points = Column(Integer, nullable=False)  # Positive = award, negative = redemption
    amount_spent = Column(Numeric(10, 2), nullable=True)
    description = Column(Text, nullable=True)
    reward_id = Column(Integer, ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    customer = relationship("Customer", back_populates="transactions")

    __table_args__ = (
        CheckConstraint(
            "type IN ('purchase', 'redemption', 'bonus', 'referral', 'signup')",
            name="point_transactions_type_valid",
        ),
        Index("ix_point_transactions_customer_created", "customer_id", "created_at"),
    )

    def __repr__(self):
        return f"<PointTransaction(id={self.id}, customer_id={self.customer_id}, type='{self.type}', points={self.points})>"
