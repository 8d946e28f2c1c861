"""ChangeNOW exchange integration through the storefront gateway.

The gateway proxies ChangeNOW v2 endpoints. Some gateway routes wrap the
payload as {"data": ...}, others return it bare; both shapes are unwrapped
here before anything is parsed.
API docs: https://changenow.io/api/docs
"""

import logging
from typing import Any, Optional

import httpx

from blockhaven.exchange.models import (
    AmountBounds,
    AmountDirection,
    Currency,
    Flow,
    OrderStatus,
    SessionContext,
    parse_timestamp,
    to_decimal,
)
from blockhaven.providers.base import (
    AddressCheck,
    CreatedExchange,
    CurrencyQuery,
    Estimate,
    EstimateQuery,
    ExchangeDraft,
    ExchangeProvider,
    ExchangeState,
    ProviderError,
)

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "http://localhost:3000/api/blockhaven"

# Status aliases seen on older gateway builds
STATUS_ALIASES = {
    "completed": OrderStatus.FINISHED,
}


def unwrap(payload: Any) -> Any:
    """Strip a {"data": ...} envelope if present."""
    if isinstance(payload, dict) and "data" in payload:
        inner = payload["data"]
        if isinstance(inner, (dict, list)):
            return inner
    return payload


def _bool_param(value: Optional[bool]) -> Optional[str]:
    if value is None:
        return None
    return "true" if value else "false"


class ChangeNowProvider(ExchangeProvider):
    """Exchange provider backed by the ChangeNOW gateway."""

    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_URL,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the gateway adapter.

        Args:
            base_url: Gateway base URL (no trailing slash needed)
            api_key: Sent as x-changenow-api-key when set
            timeout: Per-request timeout in seconds
            client: Optional preconfigured client (tests inject a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._http_client = client

    @property
    def name(self) -> str:
        return "changenow"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self, session: Optional[SessionContext] = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-changenow-api-key"] = self.api_key
        if session is not None and session.auth_token:
            headers["Authorization"] = f"Bearer {session.auth_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        session: Optional[SessionContext] = None,
    ) -> Any:
        """Perform one gateway call and return the unwrapped JSON payload."""
        client = await self._get_client()
        url = f"{self.base_url}/{path.lstrip('/')}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            response = await client.request(
                method,
                url,
                params=clean_params,
                json=json,
                headers=self._headers(session),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Gateway timeout on {method} {path}: {e}")
            raise ProviderError(f"Timeout calling {path}", error="timeout", transient=True)
        except httpx.HTTPError as e:
            logger.warning(f"Gateway transport error on {method} {path}: {e}")
            raise ProviderError(f"Could not reach provider: {e}", error="transport", transient=True)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            message = None
            if isinstance(body, dict):
                message = body.get("message") or (error if isinstance(error, str) else None)
            message = message or f"Provider returned HTTP {response.status_code}"
            logger.warning(f"Gateway error on {path}: {response.status_code} {error or ''} {message}")
            raise ProviderError(
                message,
                status_code=response.status_code,
                error=error if isinstance(error, str) else None,
                transient=response.status_code >= 500,
            )

        if body is None:
            raise ProviderError(f"Malformed response from {path}", status_code=response.status_code)

        return unwrap(body)

    async def list_currencies(self, query: CurrencyQuery) -> list[Currency]:
        payload = await self._request(
            "GET",
            "currencies",
            params={
                "active": _bool_param(query.active),
                "flow": query.flow.provider_value,
                "buy": _bool_param(query.buy),
                "sell": _bool_param(query.sell),
            },
        )
        if not isinstance(payload, list):
            raise ProviderError("Currency list is not an array")

        currencies = []
        for raw in payload:
            currency = self._parse_currency(raw)
            if currency is not None:
                currencies.append(currency)
        return currencies

    @staticmethod
    def _parse_currency(raw: Any) -> Optional[Currency]:
        if not isinstance(raw, dict) or not raw.get("ticker"):
            logger.debug(f"Skipping malformed currency entry: {raw!r}")
            return None
        ticker = str(raw["ticker"]).lower()
        return Currency(
            ticker=ticker,
            display_name=raw.get("name") or ticker.upper(),
            network=(raw.get("network") or "").strip(),
            is_fiat=bool(raw.get("isFiat", False)),
            supports_fixed_rate=bool(raw.get("supportsFixedRate", False)),
            tradable_as_source=bool(raw.get("sell", True)),
            tradable_as_destination=bool(raw.get("buy", True)),
            icon_ref=raw.get("image") or "",
            featured=bool(raw.get("featured", False)),
            is_stable=bool(raw.get("isStable", False)),
            is_extra_id_supported=bool(
                raw.get("isExtraIdSupported", raw.get("hasExternalId", False))
            ),
            legacy_ticker=raw.get("legacyTicker") or "",
            token_contract=raw.get("tokenContract"),
        )

    async def get_estimate(self, query: EstimateQuery) -> Estimate:
        params = {
            "fromCurrency": query.source_ticker,
            "toCurrency": query.destination_ticker,
            "fromNetwork": query.source_network or None,
            "toNetwork": query.destination_network or None,
            "flow": query.flow.provider_value,
            "type": query.direction.provider_type,
        }
        if query.direction is AmountDirection.FROM_SOURCE:
            params["fromAmount"] = str(query.amount)
        else:
            params["toAmount"] = str(query.amount)
        if query.flow is Flow.FIXED:
            # Needed to receive a rateId for freezing the rate
            params["useRateId"] = "true"

        payload = await self._request("GET", "estimated-amount", params=params)
        if not isinstance(payload, dict):
            raise ProviderError("Estimate response is not an object")

        from_amount = to_decimal(payload.get("fromAmount"))
        to_amount = to_decimal(payload.get("toAmount"))
        if from_amount is None and to_amount is None:
            raise ProviderError("Estimate response carries no amounts")
        if any(amount is not None and amount <= 0 for amount in (from_amount, to_amount)):
            raise ProviderError("Estimate response carries a non-positive amount")

        raw_valid_until = payload.get("validUntil")
        valid_until = parse_timestamp(raw_valid_until)
        if raw_valid_until not in (None, "") and valid_until is None:
            raise ProviderError(
                f"Estimate response has an unreadable validUntil: {raw_valid_until!r}"
            )

        return Estimate(
            from_amount=from_amount,
            to_amount=to_amount,
            rate_id=payload.get("rateId") or None,
            valid_until=valid_until,
            warning_message=payload.get("warningMessage") or None,
        )

    async def get_range(
        self,
        source_ticker: str,
        destination_ticker: str,
        flow: Flow,
    ) -> AmountBounds:
        payload = await self._request(
            "GET",
            "exchange-range",
            params={
                "fromCurrency": source_ticker,
                "toCurrency": destination_ticker,
                "flow": flow.provider_value,
            },
        )
        if not isinstance(payload, dict):
            raise ProviderError("Range response is not an object")

        min_amount = to_decimal(payload.get("minAmount"))
        if min_amount is None:
            raise ProviderError("Range response carries no minAmount")
        return AmountBounds(
            min_source_amount=min_amount,
            max_source_amount=to_decimal(payload.get("maxAmount")),
        )

    async def validate_address(self, currency: str, address: str) -> AddressCheck:
        payload = await self._request(
            "GET",
            "validate-address",
            params={"currency": currency, "address": address},
        )
        if not isinstance(payload, dict) or "result" not in payload:
            raise ProviderError("Validation response carries no result")
        return AddressCheck(
            result=bool(payload["result"]),
            message=payload.get("message") or None,
        )

    async def create_exchange(
        self,
        draft: ExchangeDraft,
        session: Optional[SessionContext] = None,
    ) -> CreatedExchange:
        payload = await self._request(
            "POST",
            "exchange",
            json=draft.to_payload(session),
            session=session,
        )
        if not isinstance(payload, dict) or not payload.get("id") or not payload.get("payinAddress"):
            raise ProviderError("Order response is missing id or payinAddress")

        return CreatedExchange(
            order_id=str(payload["id"]),
            deposit_address=payload["payinAddress"],
            payout_address=payload.get("payoutAddress") or draft.payout_address,
            from_amount=to_decimal(payload.get("fromAmount")),
            to_amount=to_decimal(payload.get("toAmount")),
            valid_until=parse_timestamp(payload.get("validUntil")),
            created_at=parse_timestamp(payload.get("createdAt")),
            refund_address=payload.get("refundAddress") or None,
            rate_id=payload.get("rateId") or None,
            deposit_extra_id=payload.get("payinExtraId") or None,
            payout_extra_id=payload.get("payoutExtraId") or None,
            warning_message=payload.get("warningMessage") or None,
        )

    async def get_exchange_status(self, order_id: str) -> ExchangeState:
        payload = await self._request("GET", "exchange/by-id", params={"id": order_id})
        if not isinstance(payload, dict) or "status" not in payload:
            raise ProviderError("Status response carries no status")

        raw_status = str(payload["status"]).lower()
        try:
            status = STATUS_ALIASES.get(raw_status) or OrderStatus(raw_status)
        except ValueError:
            raise ProviderError(f"Unknown order status: {raw_status}")

        return ExchangeState(
            order_id=str(payload.get("id") or order_id),
            status=status,
            amount_from=to_decimal(payload.get("amountFrom") or payload.get("expectedAmountFrom")),
            amount_to=to_decimal(payload.get("amountTo") or payload.get("expectedAmountTo")),
            payin_hash=payload.get("payinHash") or None,
            payout_hash=payload.get("payoutHash") or None,
            updated_at=parse_timestamp(payload.get("updatedAt") or payload.get("updated_at")),
        )
