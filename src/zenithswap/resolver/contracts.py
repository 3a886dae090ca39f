"""Request and response contracts for the resolver backend.

Field names are snake_case in Python and camelCase on the wire; always dump
with ``by_alias=True``.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ResolverModel(BaseModel):
    """Base model speaking the resolver's camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """Serialize for the request body."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class QuoteParams(ResolverModel):
    """Body of POST /quote.

    ``amount`` is expressed in the source token's smallest unit.
    """

    from_chain_id: int = Field(..., description="Source chain ID (0 = Bitcoin)")
    from_token_address: str = Field(..., description="Source token address")
    to_chain_id: int = Field(..., description="Destination chain ID (0 = Bitcoin)")
    to_token_address: str = Field(..., description="Destination token address")
    amount: str = Field(..., description="Amount in smallest unit")
    btc_destination_address: Optional[str] = Field(
        None, description="Where the user receives BTC"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> str:
        return str(value)


class RawQuoteResponse(ResolverModel):
    """Response of POST /quote, before formatting."""

    quote_id: str
    to_token_amount: str = Field(..., description="Output in the destination's smallest unit")
    fee: str = Field(default="0", description="Resolver fee in the source's smallest unit")
    estimated_time: int = Field(default=0, ge=0, description="Estimated duration in seconds")

    @field_validator("to_token_amount", "fee", mode="before")
    @classmethod
    def _smallest_units(cls, value: Any) -> str:
        """Amounts are non-negative integers, sent as JSON strings or numbers."""
        if isinstance(value, bool):
            raise ValueError("amount must be an integer")
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise ValueError(f"amount must be a non-negative integer, got {text!r}")
        return text


class InitiateSwapRequest(ResolverModel):
    """Body of POST /swap/initiate."""

    quote_id: str
    user_btc_refund_pubkey: str
    user_evm_address: str
    btc_destination_address: Optional[str] = None


class InitiateSwapResponse(ResolverModel):
    """Response of POST /swap/initiate."""

    swap_id: str = Field(..., min_length=1)
    btc_deposit_address: str = Field(..., min_length=1)
    expires_at: Optional[datetime] = Field(None, description="Deposit address expiry")


class SwapStatusResponse(ResolverModel):
    """Response of GET /swap/status/{swapId}.

    ``status`` is kept as a raw string; the resolver uses a few aliases that
    the session maps onto its own statuses.
    """

    status: str
    message: str = ""
    swap_id: Optional[str] = None
    confirmation_count: Optional[int] = Field(None, ge=0)
    evm_tx_hash: Optional[str] = None
    btc_tx_hash: Optional[str] = None
