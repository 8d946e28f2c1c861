"""Tests for order submission."""

from datetime import timedelta
from decimal import Decimal

import pytest

from blockhaven.exchange.addresses import AddressValidator
from blockhaven.exchange.catalog import CurrencyCatalog
from blockhaven.exchange.errors import (
    AddressInvalid,
    EmptyAddress,
    OrderCreationFailed,
    StaleQuote,
)
from blockhaven.exchange.models import (
    AmountDirection,
    Flow,
    OrderRequest,
    QuoteRequest,
    SessionContext,
    utcnow,
)
from blockhaven.exchange.orders import OrderService
from blockhaven.exchange.quotes import QuoteNegotiator
from blockhaven.exchange.rate_lock import RateLockStore
from blockhaven.providers.base import AddressCheck, ProviderError
from blockhaven.utils.locks import LockTimeoutError

PAYOUT = "0x52908400098527886E0F7030069857D2E4169EE7"


@pytest.fixture
def clock():
    """Mutable clock shared by the store under test."""
    return [utcnow()]


@pytest.fixture
def store(session_factory, clock) -> RateLockStore:
    return RateLockStore(session_factory, clock=lambda: clock[0])


@pytest.fixture
def service(fake_provider, store) -> OrderService:
    return OrderService(
        fake_provider,
        validator=AddressValidator(fake_provider),
        rate_locks=store,
        session=SessionContext(auth_token="token-1", user_id="user-1"),
    )


def order_request(**overrides) -> OrderRequest:
    fields = dict(
        source_ticker="btc",
        destination_ticker="eth",
        source_amount=Decimal("1"),
        destination_amount=Decimal("2"),
        payout_address=PAYOUT,
    )
    fields.update(overrides)
    return OrderRequest(**fields)


async def lock_quote(fake_provider, store, amount="1"):
    """Accept a fixed-rate quote the way the storefront does."""
    request = QuoteRequest.build("btc", "eth", amount, flow=Flow.FIXED)
    result = await QuoteNegotiator(fake_provider).estimate(request)
    await store.capture(result, request)
    return result


class TestPreconditions:
    """Local checks that run before any order is created."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source_amount,destination_amount",
        [(None, Decimal("2")), (Decimal("1"), None), (None, None)],
    )
    async def test_unresolved_amounts(self, service, fake_provider, source_amount, destination_amount):
        with pytest.raises(OrderCreationFailed) as exc_info:
            await service.submit(
                order_request(source_amount=source_amount, destination_amount=destination_amount)
            )

        assert exc_info.value.reason == "amounts_unresolved"
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_payout(self, service, fake_provider):
        with pytest.raises(EmptyAddress):
            await service.submit(order_request(payout_address=" "))

        assert fake_provider.count("create_exchange") == 0

    @pytest.mark.asyncio
    async def test_invalid_payout(self, service, fake_provider):
        fake_provider.address_checks["bad"] = AddressCheck(result=False)

        with pytest.raises(AddressInvalid):
            await service.submit(order_request(payout_address="bad"))

        assert fake_provider.count("create_exchange") == 0

    @pytest.mark.asyncio
    async def test_payout_checked_against_destination(self, service, fake_provider):
        await service.submit(order_request())

        assert fake_provider.args("validate_address")[0] == ("eth", PAYOUT)

    @pytest.mark.asyncio
    async def test_invalid_refund(self, service, fake_provider):
        fake_provider.address_checks["bad-refund"] = AddressCheck(result=False)

        with pytest.raises(AddressInvalid) as exc_info:
            await service.submit(order_request(refund_address="bad-refund"))

        assert exc_info.value.currency == "btc"
        assert fake_provider.count("create_exchange") == 0


class TestFloatingSubmission:
    """Tests for standard-flow orders."""

    @pytest.mark.asyncio
    async def test_provider_response_adopted(self, service, fake_provider):
        order = await service.submit(order_request(refund_address="bc1qrefund"))

        assert order.order_id == "order-1"
        assert order.deposit_address == "deposit-address-1"
        assert order.payout_address == PAYOUT
        assert order.refund_address == "bc1qrefund"
        assert order.flow is Flow.FLOATING
        assert order.rate_lock_id is None
        assert order.valid_until is not None

    @pytest.mark.asyncio
    async def test_draft_and_session_forwarded(self, service, fake_provider):
        await service.submit(
            order_request(
                direction=AmountDirection.FROM_DESTINATION,
                payout_extra_id="memo-9",
                contact_email="user@example.com",
            )
        )

        draft, session = fake_provider.args("create_exchange")[0]
        assert draft.direction is AmountDirection.FROM_DESTINATION
        assert draft.payout_extra_id == "memo-9"
        assert draft.contact_email == "user@example.com"
        assert draft.rate_id is None
        assert session.auth_token == "token-1"

    @pytest.mark.asyncio
    async def test_per_call_session_overrides(self, service, fake_provider):
        await service.submit(order_request(), SessionContext(auth_token="other", user_ip="10.0.0.1"))

        _, session = fake_provider.args("create_exchange")[0]
        assert session.auth_token == "other"
        assert session.user_ip == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_networks_from_catalog(self, fake_provider, store):
        catalog = CurrencyCatalog(fake_provider)
        await catalog.load()
        service = OrderService(
            fake_provider, AddressValidator(fake_provider), store, catalog=catalog
        )

        await service.submit(order_request())

        draft, _ = fake_provider.args("create_exchange")[0]
        assert draft.source_network == "btc"
        assert draft.destination_network == "eth"

    @pytest.mark.asyncio
    async def test_provider_failure(self, service, fake_provider):
        fake_provider.create_error = ProviderError("Not enough liquidity", status_code=400)

        with pytest.raises(OrderCreationFailed) as exc_info:
            await service.submit(order_request())

        assert exc_info.value.reason == "Not enough liquidity"

    @pytest.mark.asyncio
    async def test_failure_not_retried(self, service, fake_provider):
        """A failed create is reported once, never resent."""
        fake_provider.create_error = ProviderError("timeout", error="timeout", transient=True)

        with pytest.raises(OrderCreationFailed):
            await service.submit(order_request())

        assert fake_provider.count("create_exchange") == 1


class TestFixedSubmission:
    """Tests for fixed-rate orders and the rate lock."""

    @pytest.mark.asyncio
    async def test_without_lock_is_stale(self, service, fake_provider):
        with pytest.raises(StaleQuote):
            await service.submit(order_request(flow=Flow.FIXED))

        assert fake_provider.count("create_exchange") == 0

    @pytest.mark.asyncio
    async def test_after_expiry_is_stale(self, service, fake_provider, store, clock):
        """Otherwise valid input fails once the lock has expired."""
        await lock_quote(fake_provider, store)
        clock[0] = fake_provider.valid_until + timedelta(seconds=1)

        with pytest.raises(StaleQuote):
            await service.submit(order_request(flow=Flow.FIXED))

        assert fake_provider.count("create_exchange") == 0

    @pytest.mark.asyncio
    async def test_mismatched_amounts_are_stale(self, service, fake_provider, store):
        await lock_quote(fake_provider, store)

        with pytest.raises(StaleQuote):
            await service.submit(
                order_request(flow=Flow.FIXED, source_amount=Decimal("1.5"), destination_amount=Decimal("3"))
            )

    @pytest.mark.asyncio
    async def test_mismatched_pair_is_stale(self, service, fake_provider, store):
        await lock_quote(fake_provider, store)

        with pytest.raises(StaleQuote):
            await service.submit(order_request(flow=Flow.FIXED, destination_ticker="ltc"))

    @pytest.mark.asyncio
    async def test_matching_lock_submits_rate_id(self, service, fake_provider, store):
        await lock_quote(fake_provider, store)

        order = await service.submit(order_request(flow=Flow.FIXED))

        draft, _ = fake_provider.args("create_exchange")[0]
        assert draft.rate_id == "rate-123"
        assert order.rate_lock_id == "rate-123"
        assert order.flow is Flow.FIXED

    @pytest.mark.asyncio
    async def test_lock_consumed_after_success(self, service, fake_provider, store):
        await lock_quote(fake_provider, store)

        await service.submit(order_request(flow=Flow.FIXED))

        assert await store.current() is None

    @pytest.mark.asyncio
    async def test_lock_kept_after_failure(self, service, fake_provider, store):
        await lock_quote(fake_provider, store)
        fake_provider.create_error = ProviderError("rate expired upstream", status_code=400)

        with pytest.raises(OrderCreationFailed):
            await service.submit(order_request(flow=Flow.FIXED))

        assert await store.current() is not None


class LockStoreWithFailingClear(RateLockStore):
    async def clear(self) -> bool:
        raise LockTimeoutError("Could not acquire lock rate_lock within 10.0s")


class TestAfterCreation:
    """Failures after the provider accepted the order."""

    @pytest.mark.asyncio
    async def test_failed_lock_clear_still_returns_order(self, fake_provider, session_factory):
        store = LockStoreWithFailingClear(session_factory)
        service = OrderService(
            fake_provider, validator=AddressValidator(fake_provider), rate_locks=store
        )
        await lock_quote(fake_provider, store)

        order = await service.submit(order_request(flow=Flow.FIXED))

        assert order.order_id == "order-1"
        assert order.deposit_address == "deposit-address-1"
        assert fake_provider.count("create_exchange") == 1

    @pytest.mark.asyncio
    async def test_transient_failure_outcome_unknown(self, service, fake_provider):
        fake_provider.create_error = ProviderError("timeout", error="timeout", transient=True)

        with pytest.raises(OrderCreationFailed) as exc_info:
            await service.submit(order_request())

        assert exc_info.value.outcome_unknown
        assert "may still have been created" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_rejection_outcome_known(self, service, fake_provider):
        fake_provider.create_error = ProviderError("Not enough liquidity", status_code=400)

        with pytest.raises(OrderCreationFailed) as exc_info:
            await service.submit(order_request())

        assert not exc_info.value.outcome_unknown
