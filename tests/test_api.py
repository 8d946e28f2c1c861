"""Tests for the FastAPI endpoints."""

import asyncio
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from blockhaven.api.app import create_app
from blockhaven.exchange.engine import get_exchange_engine, reset_exchange_engine
from blockhaven.ledger.database import close_db, get_engine
from blockhaven.ledger.models import Base
from blockhaven.providers.factory import reset_provider

BTC_ADDRESS = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"
ETH_ADDRESS = "0x52908400098527886E0F7030069857D2E4169EE7"


@pytest.fixture
async def test_app():
    """Create test application with fresh database and dry-run provider."""
    reset_provider()
    reset_exchange_engine()

    # Create tables in memory database
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app = create_app()

    yield app

    # Cleanup
    await get_exchange_engine().close()
    reset_exchange_engine()
    reset_provider()
    await close_db()


@pytest.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "blockhaven"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "dryrun"
        assert "config" in data
        assert data["config"]["environment"] == "test"


class TestCurrencyEndpoints:
    """Tests for the currency catalog endpoints."""

    @pytest.mark.asyncio
    async def test_list_currencies(self, client):
        response = await client.get("/api/v1/currencies")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total"] == len(data["currencies"])
        featured = [c["featured"] for c in data["currencies"]]
        assert featured == sorted(featured, reverse=True)

    @pytest.mark.asyncio
    async def test_fixed_flow_listing(self, client):
        response = await client.get("/api/v1/currencies", params={"flow": "fixed"})

        tickers = [c["ticker"] for c in response.json()["currencies"]]
        assert "xmr" not in tickers
        assert "btc" in tickers

    @pytest.mark.asyncio
    async def test_get_currency(self, client):
        response = await client.get("/api/v1/currencies/BTC")

        data = response.json()
        assert data["success"] is True
        assert data["currency"]["name"] == "Bitcoin"
        assert data["currency"]["color"] == "#f7931a"

    @pytest.mark.asyncio
    async def test_unknown_currency(self, client):
        response = await client.get("/api/v1/currencies/nope")

        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "unknown_currency"


class TestQuoteEndpoints:
    """Tests for estimates and rate locks."""

    @pytest.mark.asyncio
    async def test_estimate(self, client):
        response = await client.post(
            "/api/v1/quotes/estimate",
            json={"from_currency": "btc", "to_currency": "eth", "amount": "1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["direction"] == "fromSource"
        assert Decimal(data["from_amount"]) == Decimal("1")
        assert Decimal(data["to_amount"]) > 0
        assert data["rate_id"] is None
        assert data["out_of_bounds"] is False

    @pytest.mark.asyncio
    async def test_estimate_below_minimum(self, client):
        response = await client.post(
            "/api/v1/quotes/estimate",
            json={"from_currency": "btc", "to_currency": "eth", "amount": "0.000001"},
        )

        data = response.json()
        assert data["success"] is True
        assert data["to_amount"] is not None
        assert data["out_of_bounds"] is True
        assert data["bound_violation"] == "below_minimum"

    @pytest.mark.asyncio
    async def test_estimate_blank_amount(self, client):
        response = await client.post(
            "/api/v1/quotes/estimate",
            json={"from_currency": "btc", "to_currency": "eth", "amount": ""},
        )

        data = response.json()
        assert data["success"] is True
        assert data["from_amount"] is None
        assert data["to_amount"] is None

    @pytest.mark.asyncio
    async def test_estimate_same_currency(self, client):
        response = await client.post(
            "/api/v1/quotes/estimate",
            json={"from_currency": "btc", "to_currency": "BTC", "amount": "1"},
        )

        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "invalid_pair"
        assert data["notify"] is True

    @pytest.mark.asyncio
    async def test_repeated_error_notifies_once(self, client):
        payload = {"from_currency": "btc", "to_currency": "zzz", "amount": "1"}

        first = (await client.post("/api/v1/quotes/estimate", json=payload)).json()
        second = (await client.post("/api/v1/quotes/estimate", json=payload)).json()

        assert first["error_code"] == "quote_unavailable"
        assert first["notify"] is True
        assert second["notify"] is False

    @pytest.mark.asyncio
    async def test_lock_lifecycle(self, client):
        response = await client.post(
            "/api/v1/quotes/lock",
            json={"from_currency": "btc", "to_currency": "eth", "amount": "1"},
        )
        locked = response.json()
        assert locked["success"] is True
        assert locked["active"] is True
        assert locked["rate_id"]
        assert locked["about_to_expire"] is False
        assert locked["countdown"].endswith("remaining")

        check = await client.get(
            "/api/v1/quotes/lock",
            params={
                "from_currency": "btc",
                "to_currency": "eth",
                "from_amount": locked["from_amount"],
                "to_amount": locked["to_amount"],
            },
        )
        assert check.json()["matches"] is True

        mismatch = await client.get(
            "/api/v1/quotes/lock",
            params={
                "from_currency": "btc",
                "to_currency": "eth",
                "from_amount": "2",
                "to_amount": locked["to_amount"],
            },
        )
        assert mismatch.json()["matches"] is False

        cleared = await client.delete("/api/v1/quotes/lock")
        assert cleared.json()["active"] is False
        assert (await client.get("/api/v1/quotes/lock")).json()["active"] is False

    @pytest.mark.asyncio
    async def test_lock_floating_only_currency(self, client):
        await client.get("/api/v1/currencies")
        response = await client.post(
            "/api/v1/quotes/lock",
            json={"from_currency": "xmr", "to_currency": "btc", "amount": "1"},
        )

        data = response.json()
        assert data["success"] is False
        assert data["active"] is False


class TestAddressEndpoints:
    """Tests for address validation."""

    @pytest.mark.asyncio
    async def test_empty_address(self, client):
        response = await client.post(
            "/api/v1/addresses/validate", json={"currency": "btc", "address": ""}
        )

        data = response.json()
        assert data["is_valid"] is False
        assert data["reason"] == "empty_address"

    @pytest.mark.asyncio
    async def test_valid_address(self, client):
        response = await client.post(
            "/api/v1/addresses/validate", json={"currency": "eth", "address": ETH_ADDRESS}
        )

        assert response.json()["is_valid"] is True

    @pytest.mark.asyncio
    async def test_invalid_address(self, client):
        response = await client.post(
            "/api/v1/addresses/validate", json={"currency": "eth", "address": "0x123"}
        )

        data = response.json()
        assert data["is_valid"] is False
        assert data["message"] == "Invalid ETH address format"

    @pytest.mark.asyncio
    async def test_empty_refund_is_valid(self, client):
        response = await client.post(
            "/api/v1/addresses/validate",
            json={"currency": "btc", "address": "", "role": "refund"},
        )

        assert response.json()["is_valid"] is True


class TestOrderEndpoints:
    """Tests for order creation and tracking."""

    async def _create_floating(self, client) -> dict:
        response = await client.post(
            "/api/v1/orders",
            json={
                "from_currency": "btc",
                "to_currency": "eth",
                "from_amount": "0.1",
                "to_amount": "2.5",
                "address": ETH_ADDRESS,
                "refund_address": BTC_ADDRESS,
            },
            headers={"Authorization": "Bearer test-token"},
        )
        assert response.status_code == 200
        return response.json()

    @pytest.mark.asyncio
    async def test_create_floating_order(self, client):
        data = await self._create_floating(client)

        assert data["success"] is True
        assert data["order_id"]
        assert data["deposit_address"].startswith("sim:btc:")
        assert data["payout_address"] == ETH_ADDRESS
        assert data["refund_address"] == BTC_ADDRESS

    @pytest.mark.asyncio
    async def test_fixed_order_without_lock(self, client):
        response = await client.post(
            "/api/v1/orders",
            json={
                "from_currency": "btc",
                "to_currency": "eth",
                "from_amount": "1",
                "to_amount": "25",
                "address": ETH_ADDRESS,
                "flow": "fixed",
            },
        )

        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "stale_quote"

    @pytest.mark.asyncio
    async def test_fixed_order_with_lock(self, client):
        locked = (
            await client.post(
                "/api/v1/quotes/lock",
                json={"from_currency": "btc", "to_currency": "eth", "amount": "1"},
            )
        ).json()

        response = await client.post(
            "/api/v1/orders",
            json={
                "from_currency": "btc",
                "to_currency": "eth",
                "from_amount": locked["from_amount"],
                "to_amount": locked["to_amount"],
                "address": ETH_ADDRESS,
                "flow": "fixed",
            },
        )

        data = response.json()
        assert data["success"] is True
        assert data["rate_id"] == locked["rate_id"]
        assert (await client.get("/api/v1/quotes/lock")).json()["active"] is False

    @pytest.mark.asyncio
    async def test_order_with_invalid_address(self, client):
        response = await client.post(
            "/api/v1/orders",
            json={
                "from_currency": "btc",
                "to_currency": "eth",
                "from_amount": "0.1",
                "to_amount": "2.5",
                "address": "not-an-address",
            },
        )

        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "address_invalid"

    @pytest.mark.asyncio
    async def test_order_status(self, client):
        order = await self._create_floating(client)

        response = await client.get(f"/api/v1/orders/{order['order_id']}/status")

        data = response.json()
        assert data["success"] is True
        assert data["status"] == "new"
        assert data["label"] == "Waiting for deposit"
        assert data["is_terminal"] is False

    @pytest.mark.asyncio
    async def test_unknown_order_status(self, client):
        response = await client.get("/api/v1/orders/missing/status")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_tracking_runs_to_completion(self, client):
        order = await self._create_floating(client)
        order_id = order["order_id"]

        started = await client.post(f"/api/v1/orders/{order_id}/track")
        assert started.json()["success"] is True

        tracking = None
        for _ in range(200):
            tracking = (await client.get(f"/api/v1/orders/{order_id}/track")).json()
            if not tracking["active"]:
                break
            await asyncio.sleep(0.01)

        assert tracking["active"] is False
        assert tracking["last_status"]["status"] == "finished"
        assert tracking["last_status"]["is_terminal"] is True

    @pytest.mark.asyncio
    async def test_stop_tracking(self, client):
        order = await self._create_floating(client)
        order_id = order["order_id"]
        await client.post(f"/api/v1/orders/{order_id}/track")

        stopped = await client.delete(f"/api/v1/orders/{order_id}/track")

        assert stopped.status_code == 200
        assert (await client.get(f"/api/v1/orders/{order_id}/track")).status_code == 404
        assert (await client.delete(f"/api/v1/orders/{order_id}/track")).status_code == 404
