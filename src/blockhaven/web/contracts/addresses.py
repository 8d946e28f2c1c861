"""Address validation contracts."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class AddressValidationRequest(BaseModel):
    """Address to check.

    For role "refund" the currency is the source currency of the exchange.
    """

    currency: str = Field(..., description="Ticker the address belongs to")
    address: str = Field("", description="Wallet address")
    role: Literal["payout", "refund"] = "payout"


class AddressValidationResponse(BaseModel):
    currency: str
    address: str
    is_valid: bool
    message: Optional[str] = None
    reason: Optional[str] = None
