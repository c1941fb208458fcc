# backend/tests/modules/loyalty/conftest.py

"""
Fixtures for loyalty tests.

Each test gets its own SQLite database file. Transactions start with
BEGIN IMMEDIATE so that concurrent sessions serialize on the write lock
the way row locks serialize them on PostgreSQL.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from core.database import Base, get_async_db
from core.memory_cache import LRUCache
from modules.loyalty.models import Customer, MenuItem, Restaurant, Reward
from modules.loyalty.services import loyalty_config


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with all loyalty tables created"""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'loyalty.db'}",
        connect_args={"timeout": 15},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def fresh_config_cache(monkeypatch):
    """Isolate the configuration cache between tests"""
    cache = LRUCache(max_size=100, ttl_seconds=60)
    monkeypatch.setattr(loyalty_config, "config_cache", cache)
    return cache


@pytest_asyncio.fixture
async def seed(session_factory):
    """
    One restaurant with customers, menu items and rewards.

    Returns plain ids; the seeding session is closed before the test runs.
    """
    async with session_factory() as session:
        restaurant = Restaurant(name="Test Bistro", slug="test-bistro", settings={})
        other_restaurant = Restaurant(name="Other Place", slug="other-place", settings={})
        session.add_all([restaurant, other_restaurant])
        await session.flush()

        alice = Customer(
            restaurant_id=restaurant.id, first_name="Alice", last_name="Brown",
            email="alice@example.com", total_points=150, lifetime_points=150,
            current_tier="bronze", tier_progress=30,
        )
        bob = Customer(
            restaurant_id=restaurant.id, first_name="Bob", last_name="Green",
            email="bob@example.com", total_points=50, lifetime_points=50,
            current_tier="bronze", tier_progress=10,
        )
        carol = Customer(
            restaurant_id=restaurant.id, first_name="Carol", last_name="White",
            email="carol@example.com", total_points=600, lifetime_points=600,
            current_tier="silver", tier_progress=20,
        )
        dave = Customer(
            restaurant_id=restaurant.id, first_name="Dave", last_name="Black",
            email="dave@example.com", total_points=100, lifetime_points=100,
            current_tier="bronze", tier_progress=20,
        )
        outsider = Customer(
            restaurant_id=other_restaurant.id, first_name="Olga", last_name="Grey",
            email="olga@example.com", total_points=1000, lifetime_points=1000,
            current_tier="gold", tier_progress=0,
        )

        burger = MenuItem(
            restaurant_id=restaurant.id, name="Burger", category="main",
            cost_price=8, selling_price=15, loyalty_mode="smart",
            loyalty_settings={"profit_allocation_percent": 20},
        )
        soda = MenuItem(
            restaurant_id=restaurant.id, name="Soda", category="drinks",
            cost_price=1, selling_price=3, loyalty_mode="manual",
            loyalty_settings={"fixed_points": 5},
        )
        water = MenuItem(
            restaurant_id=restaurant.id, name="Water", category="drinks",
            cost_price=0, selling_price=2, loyalty_mode="none", loyalty_settings={},
        )

        coffee = Reward(
            restaurant_id=restaurant.id, name="Free Coffee", points_required=100,
            min_tier="bronze",
        )
        dessert = Reward(
            restaurant_id=restaurant.id, name="Chef's Dessert", points_required=100,
            min_tier="silver",
        )
        limited = Reward(
            restaurant_id=restaurant.id, name="Signed Cookbook", points_required=100,
            min_tier="bronze", total_available=1, total_redeemed=1,
        )
        retired = Reward(
            restaurant_id=restaurant.id, name="Old Mug", points_required=10,
            min_tier="bronze", is_active=False,
        )

        session.add_all(
            [alice, bob, carol, dave, outsider, burger, soda, water,
             coffee, dessert, limited, retired]
        )
        await session.commit()

        return SimpleNamespace(
            restaurant_id=restaurant.id,
            other_restaurant_id=other_restaurant.id,
            alice_id=alice.id,
            bob_id=bob.id,
            carol_id=carol.id,
            dave_id=dave.id,
            outsider_id=outsider.id,
            burger_id=burger.id,
            soda_id=soda.id,
            water_id=water.id,
            coffee_id=coffee.id,
            dessert_id=dessert.id,
            limited_id=limited.id,
            retired_id=retired.id,
        )


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app with sessions bound to the test database"""
    from app.main import app

    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
