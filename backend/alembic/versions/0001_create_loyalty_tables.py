"""Create loyalty tables

Revision ID: 0001_create_loyalty_tables
Revises:
Create Date: 2025-08-02 15:44:12.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_loyalty_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('restaurants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index('ix_restaurants_id', 'restaurants', ['id'])

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lifetime_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_tier', sa.String(length=20), nullable=False, server_default='bronze'),
        sa.Column('tier_progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('visit_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('last_visit', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('restaurant_id', 'email', name='uq_customers_restaurant_email'),
        sa.CheckConstraint('total_points >= 0', name='customers_total_points_non_negative'),
        sa.CheckConstraint('lifetime_points >= 0', name='customers_lifetime_points_non_negative'),
        sa.CheckConstraint("current_tier IN ('bronze', 'silver', 'gold')", name='customers_tier_valid')
    )
    op.create_index('ix_customers_id', 'customers', ['id'])
    op.create_index('ix_customers_restaurant_id', 'customers', ['restaurant_id'])

    op.create_table('menu_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=False, server_default='main'),
        sa.Column('cost_price', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('selling_price', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('loyalty_mode', sa.String(length=20), nullable=False, server_default='none'),
        sa.Column('loyalty_settings', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('cost_price >= 0', name='menu_items_cost_price_non_negative'),
        sa.CheckConstraint('selling_price >= 0', name='menu_items_selling_price_non_negative'),
        sa.CheckConstraint("loyalty_mode IN ('smart', 'manual', 'none')", name='menu_items_loyalty_mode_valid')
    )
    op.create_index('ix_menu_items_id', 'menu_items', ['id'])
    op.create_index('ix_menu_items_restaurant_id', 'menu_items', ['restaurant_id'])

    op.create_table('rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=False, server_default='food'),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('min_tier', sa.String(length=20), nullable=False, server_default='bronze'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('total_available', sa.Integer(), nullable=True),
        sa.Column('total_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('points_required > 0', name='rewards_points_required_positive'),
        sa.CheckConstraint('total_redeemed >= 0', name='rewards_total_redeemed_non_negative'),
        sa.CheckConstraint(
            'total_available IS NULL OR total_redeemed <= total_available',
            name='rewards_total_redeemed_within_cap'
        ),
        sa.CheckConstraint(
            "min_tier IN ('bronze', 'silver', 'gold', 'platinum')", name='rewards_min_tier_valid'
        )
    )
    op.create_index('ix_rewards_id', 'rewards', ['id'])
    op.create_index('ix_rewards_restaurant_id', 'rewards', ['restaurant_id'])
    op.create_index('ix_rewards_is_active', 'rewards', ['is_active'])
    op.create_index('ix_rewards_restaurant_active', 'rewards', ['restaurant_id', 'is_active'])

    op.create_table('point_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('amount_spent', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reward_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "type IN ('purchase', 'redemption', 'bonus', 'referral', 'signup')",
            name='point_transactions_type_valid'
        )
    )
    op.create_index('ix_point_transactions_id', 'point_transactions', ['id'])
    op.create_index(
        'ix_point_transactions_customer_created', 'point_transactions', ['customer_id', 'created_at']
    )

    op.create_table('reward_redemptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('reward_id', sa.Integer(), nullable=False),
        sa.Column('points_used', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('redeemed_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('points_used > 0', name='reward_redemptions_points_used_positive'),
        sa.CheckConstraint(
            "status IN ('pending', 'used', 'expired')", name='reward_redemptions_status_valid'
        )
    )
    op.create_index('ix_reward_redemptions_id', 'reward_redemptions', ['id'])
    op.create_index('ix_reward_redemptions_restaurant_id', 'reward_redemptions', ['restaurant_id'])
    op.create_index('ix_reward_redemptions_customer_id', 'reward_redemptions', ['customer_id'])
    op.create_index('ix_reward_redemptions_reward_id', 'reward_redemptions', ['reward_id'])
    op.create_index(
        'ix_reward_redemptions_status_redeemed', 'reward_redemptions', ['status', 'redeemed_at']
    )


def downgrade():
    op.drop_table('reward_redemptions')
    op.drop_table('point_transactions')
    op.drop_table('rewards')
    op.drop_table('menu_items')
    op.drop_table('customers')
    op.drop_table('restaurants')
