"""Request and response contracts for the web layer.

These Pydantic models define the API interface for storefront clients.
"""

from blockhaven.web.contracts.addresses import (
    AddressValidationRequest,
    AddressValidationResponse,
)
from blockhaven.web.contracts.currencies import (
    CurrencyInfo,
    CurrencyListResponse,
    CurrencyResponse,
)
from blockhaven.web.contracts.orders import (
    OrderCreateRequest,
    OrderResponse,
    OrderStatusResponse,
    TrackingResponse,
)
from blockhaven.web.contracts.quotes import (
    EstimateRequest,
    EstimateResponse,
    RateLockResponse,
)

__all__ = [
    # Currency contracts
    "CurrencyInfo",
    "CurrencyListResponse",
    "CurrencyResponse",
    # Quote contracts
    "EstimateRequest",
    "EstimateResponse",
    "RateLockResponse",
    # Address contracts
    "AddressValidationRequest",
    "AddressValidationResponse",
    # Order contracts
    "OrderCreateRequest",
    "OrderResponse",
    "OrderStatusResponse",
    "TrackingResponse",
]
