"""Address validation endpoint."""

from fastapi import APIRouter

from blockhaven.web.contracts.addresses import (
    AddressValidationRequest,
    AddressValidationResponse,
)
from blockhaven.web.services.exchange_service import ExchangeService

router = APIRouter(prefix="/addresses", tags=["addresses"])

# Service instance
_exchange_service = ExchangeService()


@router.post("/validate", response_model=AddressValidationResponse)
async def validate_address(request: AddressValidationRequest) -> AddressValidationResponse:
    """Validate a payout address, or a refund address against the source currency."""
    return await _exchange_service.validate_address(request)
