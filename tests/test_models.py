"""Tests for domain types and parsing helpers."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from blockhaven.config import Settings
from blockhaven.exchange.models import (
    AmountBounds,
    AmountDirection,
    BoundViolation,
    EditingDestination,
    EditingSource,
    Flow,
    QuoteRequest,
    SessionContext,
    parse_amount,
    parse_timestamp,
    to_decimal,
)
from blockhaven.ledger.database import normalize_database_url
from blockhaven.providers.base import ExchangeDraft


class TestAmountParsing:
    """Tests for parse_amount and to_decimal."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1", Decimal("1")),
            (" 2.50 ", Decimal("2.50")),
            ("0,75", Decimal("0.75")),
            (Decimal("3"), Decimal("3")),
            (5, Decimal("5")),
        ],
    )
    def test_positive(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "0", "-2", "abc", "NaN", "Infinity", Decimal("0")])
    def test_rejected(self, raw):
        assert parse_amount(raw) is None

    def test_to_decimal_avoids_float_noise(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(None) is None
        assert to_decimal("x") is None


class TestTimestamps:
    """Tests for parse_timestamp."""

    def test_zulu(self):
        parsed = parse_timestamp("2026-10-19T10:00:00Z")

        assert parsed == datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-10-19T10:00:00").tzinfo is not None

    def test_epoch_millis(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_garbage(self):
        assert parse_timestamp("tomorrow") is None
        assert parse_timestamp(None) is None


class TestQuoteRequest:
    """Tests for the tagged amount edit."""

    def test_build_source_edit(self):
        request = QuoteRequest.build("BTC", "ETH", "1")

        assert request.source_ticker == "btc"
        assert isinstance(request.edit, EditingSource)
        assert request.edit.tag == "editingSource"
        assert request.amount_direction is AmountDirection.FROM_SOURCE

    def test_build_destination_edit(self):
        request = QuoteRequest.build("btc", "eth", "2", direction="fromDestination", flow="fixed")

        assert isinstance(request.edit, EditingDestination)
        assert request.flow is Flow.FIXED
        assert request.amount == Decimal("2")


class TestBounds:
    """Tests for AmountBounds.check."""

    def test_without_ceiling(self):
        bounds = AmountBounds(Decimal("0.01"))

        assert bounds.check(Decimal("1000000")) is None
        assert bounds.check(Decimal("0.001")) is BoundViolation.BELOW_MINIMUM

    def test_edges_inclusive(self):
        bounds = AmountBounds(Decimal("0.01"), Decimal("5"))

        assert bounds.check(Decimal("0.01")) is None
        assert bounds.check(Decimal("5")) is None


class TestExchangeDraft:
    """Tests for the order creation payload."""

    def test_reverse_payload(self):
        draft = ExchangeDraft(
            source_ticker="btc",
            destination_ticker="eth",
            payout_address="0xabc",
            flow=Flow.FLOATING,
            direction=AmountDirection.FROM_DESTINATION,
            destination_amount=Decimal("2"),
            payout_extra_id="",
        )

        payload = draft.to_payload(SessionContext(user_ip="10.0.0.2"))

        assert payload["toAmount"] == "2"
        assert payload["type"] == "reverse"
        assert payload["flow"] == "standard"
        assert payload["userIp"] == "10.0.0.2"
        assert "extraId" not in payload
        assert "userId" not in payload


class TestSettings:
    """Tests for configuration."""

    def test_plain_sqlite_url_uses_async_driver(self):
        assert normalize_database_url("sqlite:///./data/x.db") == "sqlite+aiosqlite:///./data/x.db"
        assert normalize_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"

    def test_safe_dict_masks_secrets(self):
        settings = Settings(
            provider_api_key="secret",
            database_url="postgresql+asyncpg://user:pass@db/blockhaven",
        )

        safe = settings.get_safe_dict()

        assert safe["provider"]["api_key"] == "***"
        assert "pass" not in safe["database_url"]
        assert safe["database_url"] == "postgresql+asyncpg://user:***@db/blockhaven"

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.quote_timeout_seconds == 12.0
        assert settings.status_failure_escalation == 3
        assert settings.rate_expiry_warning_seconds == 120


class TestEpochOverflow:
    """Epoch values outside the platform's datetime range."""

    @pytest.mark.parametrize("raw", [10**20, -(10**20), float("inf"), float("nan")])
    def test_out_of_range_epoch_is_none(self, raw):
        assert parse_timestamp(raw) is None
