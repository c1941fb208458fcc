# backend/tests/modules/loyalty/test_loyalty_routes.py

"""
API tests for the loyalty and rewards routes.
"""

import pytest


def url(seed, path):
    return f"/api/v1/restaurants/{seed.restaurant_id}{path}"


class TestConfigRoutes:
    """Configuration endpoints"""

    @pytest.mark.asyncio
    async def test_get_default_config(self, client, seed):
        response = await client.get(url(seed, "/loyalty/config"))

        assert response.status_code == 200
        data = response.json()
        assert data["point_value"] == 0.05
        assert data["blanket_mode"]["enabled"] is False
        assert data["tier_multipliers"]["platinum"] == 2.0

    @pytest.mark.asyncio
    async def test_get_config_unknown_restaurant(self, client, seed):
        response = await client.get("/api/v1/restaurants/9999/loyalty/config")

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_update_config(self, client, seed):
        response = await client.put(
            url(seed, "/loyalty/config"),
            json={
                "point_value": 0.1,
                "blanket_mode": {"enabled": True, "type": "manual"},
            },
        )

        assert response.status_code == 200
        assert response.json()["point_value"] == 0.1

        response = await client.get(url(seed, "/loyalty/config"))
        data = response.json()
        assert data["blanket_mode"]["enabled"] is True
        assert data["blanket_mode"]["type"] == "manual"

    @pytest.mark.asyncio
    async def test_update_config_out_of_range(self, client, seed):
        response = await client.put(
            url(seed, "/loyalty/config"),
            json={"blanket_mode": {"smart_settings": {"profit_allocation_percent": 80}}},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_preview(self, client, seed):
        response = await client.post(
            url(seed, "/loyalty/preview"),
            json={"menu_item_id": seed.burger_id, "customer_tier": "gold"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["points"] == 42
        assert data["breakdown"]["mode"] == "item_smart"


class TestCustomerRoutes:
    """Customers and the point ledger"""

    @pytest.mark.asyncio
    async def test_create_and_fetch_customer(self, client, seed):
        response = await client.post(
            url(seed, "/customers"),
            json={"first_name": "Erin", "last_name": "Stone", "email": "Erin@Example.com"},
        )

        assert response.status_code == 201
        created = response.json()
        assert created["email"] == "erin@example.com"
        assert created["total_points"] == 0
        assert created["current_tier"] == "bronze"

        by_email = await client.get(url(seed, "/customers/erin@example.com"))
        assert by_email.status_code == 200
        assert by_email.json()["id"] == created["id"]

        by_id = await client.get(url(seed, f"/customers/{created['id']}"))
        assert by_id.json()["email"] == "erin@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_customer_email(self, client, seed):
        response = await client.post(
            url(seed, "/customers"),
            json={"first_name": "Al", "last_name": "B", "email": "alice@example.com"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_customer(self, client, seed):
        response = await client.get(url(seed, "/customers/nobody"))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_manual_transaction_and_history(self, client, seed):
        response = await client.post(
            url(seed, f"/customers/{seed.alice_id}/transactions"),
            json={"type": "bonus", "points": 400, "description": "Birthday"},
        )

        assert response.status_code == 201
        assert response.json()["points"] == 400

        customer = (await client.get(url(seed, f"/customers/{seed.alice_id}"))).json()
        assert customer["total_points"] == 550
        assert customer["current_tier"] == "silver"

        history = await client.get(url(seed, f"/customers/{seed.alice_id}/transactions"))
        assert [t["description"] for t in history.json()] == ["Birthday"]

    @pytest.mark.asyncio
    async def test_zero_point_transaction_rejected(self, client, seed):
        response = await client.post(
            url(seed, f"/customers/{seed.alice_id}/transactions"),
            json={"type": "bonus", "points": 0},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "redemption", "points": 400},
            {"type": "redemption", "points": -100, "reward_id": 1},
            {"type": "purchase", "points": 10},
            {"type": "purchase", "points": -10},
            {"type": "bonus", "points": -10},
        ],
    )
    async def test_manual_transaction_limited_to_awards(self, client, seed, payload):
        response = await client.post(
            url(seed, f"/customers/{seed.alice_id}/transactions"), json=payload
        )

        assert response.status_code == 422

        customer = (await client.get(url(seed, f"/customers/{seed.alice_id}"))).json()
        assert customer["total_points"] == 150
        assert customer["lifetime_points"] == 150
        assert customer["current_tier"] == "bronze"
        assert customer["visit_count"] == 0

        history = await client.get(url(seed, f"/customers/{seed.alice_id}/transactions"))
        assert history.json() == []

        rewards = (await client.get(url(seed, "/rewards"))).json()
        coffee = next(r for r in rewards if r["id"] == seed.coffee_id)
        assert coffee["total_redeemed"] == 0
        assert (await client.get(url(seed, "/redemptions"))).json() == []

    @pytest.mark.asyncio
    async def test_purchase_award(self, client, seed):
        response = await client.post(
            url(seed, f"/customers/{seed.alice_id}/purchases"),
            json={
                "amount_spent": 30,
                "items": [{"menu_item_id": seed.burger_id, "quantity": 2}],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["points_awarded"] == 56
        assert data["transaction"]["type"] == "purchase"

    @pytest.mark.asyncio
    async def test_purchase_without_points(self, client, seed):
        response = await client.post(
            url(seed, f"/customers/{seed.alice_id}/purchases"), json={"amount_spent": 5}
        )

        assert response.status_code == 200
        assert response.json() == {"points_awarded": 0, "transaction": None}


class TestRewardRoutes:
    """Catalog and redemption endpoints"""

    @pytest.mark.asyncio
    async def test_redeem_success(self, client, seed):
        response = await client.post(
            url(seed, f"/rewards/{seed.coffee_id}/redeem"), json={"customer_id": seed.alice_id}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["points_used"] == 100

        customer = (await client.get(url(seed, f"/customers/{seed.alice_id}"))).json()
        assert customer["total_points"] == 50

        listing = (await client.get(url(seed, "/redemptions"), params={"status": "pending"})).json()
        assert listing[0]["reward_name"] == "Free Coffee"
        assert listing[0]["customer_name"] == "Alice Brown"

        used = await client.post(url(seed, f"/redemptions/{data['id']}/use"))
        assert used.status_code == 200
        assert used.json()["status"] == "used"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "customer, reward, status_code, error_code",
        [
            ("bob_id", "coffee_id", 409, "INSUFFICIENT_POINTS"),
            ("alice_id", "dessert_id", 403, "TIER_TOO_LOW"),
            ("carol_id", "limited_id", 409, "SOLD_OUT"),
            ("alice_id", "retired_id", 404, "NOT_FOUND"),
        ],
    )
    async def test_redeem_refusals(self, client, seed, customer, reward, status_code, error_code):
        response = await client.post(
            url(seed, f"/rewards/{getattr(seed, reward)}/redeem"),
            json={"customer_id": getattr(seed, customer)},
        )

        assert response.status_code == status_code
        assert response.json()["detail"]["error_code"] == error_code

    @pytest.mark.asyncio
    async def test_create_reward_and_stats(self, client, seed):
        response = await client.post(
            url(seed, "/rewards"),
            json={"name": "Free Fries", "points_required": 40, "min_tier": "bronze"},
        )
        assert response.status_code == 201

        stats = (await client.get(url(seed, "/rewards/stats"))).json()
        assert stats["total_rewards"] == 5
        assert stats["active_rewards"] == 4

    @pytest.mark.asyncio
    async def test_available_rewards(self, client, seed):
        response = await client.get(url(seed, f"/customers/{seed.carol_id}/available-rewards"))

        assert response.status_code == 200
        assert {r["name"] for r in response.json()} == {"Free Coffee", "Chef's Dessert"}

    @pytest.mark.asyncio
    async def test_expire_redemptions(self, client, seed):
        await client.post(
            url(seed, f"/rewards/{seed.coffee_id}/redeem"), json={"customer_id": seed.alice_id}
        )

        response = await client.post(url(seed, "/redemptions/expire"), json={"older_than_days": 30})

        assert response.status_code == 200
        assert response.json() == {"expired": 0}


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
