"""Resolver backend client and wire contracts."""

from zenithswap.resolver.client import ExchangeAPIClient
from zenithswap.resolver.contracts import (
    InitiateSwapRequest,
    InitiateSwapResponse,
    QuoteParams,
    RawQuoteResponse,
    SwapStatusResponse,
)

__all__ = [
    "ExchangeAPIClient",
    "InitiateSwapRequest",
    "InitiateSwapResponse",
    "QuoteParams",
    "RawQuoteResponse",
    "SwapStatusResponse",
]
