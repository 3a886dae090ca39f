"""HTTP client for the resolver backend.

The resolver quotes BTC <-> EVM swaps, hands out single-use BTC deposit
addresses and reports swap progress. This client only moves JSON; it holds no
swap state.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from zenithswap.errors import (
    QuoteFetchError,
    StatusPollError,
    SwapInitiationError,
    SwapNotFoundError,
)
from zenithswap.resolver.contracts import (
    InitiateSwapRequest,
    InitiateSwapResponse,
    QuoteParams,
    RawQuoteResponse,
    SwapStatusResponse,
)

logger = logging.getLogger(__name__)


class ExchangeAPIClient:
    """Async client for the resolver's quote, initiate and status endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Resolver base URL, e.g. http://localhost:8080
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._http_client

    async def get_quote(self, params: QuoteParams) -> RawQuoteResponse:
        """Request a quote.

        Raises:
            QuoteFetchError: On transport failure, non-2xx status or bad payload
        """
        client = await self._get_client()
        try:
            response = await client.post("/quote", json=params.to_wire())
        except httpx.HTTPError as e:
            logger.error(f"Quote request failed: {e}")
            raise QuoteFetchError(f"Quote request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Quote request returned HTTP {response.status_code}")
            raise QuoteFetchError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return RawQuoteResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed quote response: {e}")
            raise QuoteFetchError("Malformed quote response") from e

    async def initiate_swap(self, request: InitiateSwapRequest) -> InitiateSwapResponse:
        """Start a swap for a previously fetched quote.

        Raises:
            SwapInitiationError: On transport failure, non-2xx status or bad payload
        """
        client = await self._get_client()
        try:
            response = await client.post("/swap/initiate", json=request.to_wire())
        except httpx.HTTPError as e:
            logger.error(f"Swap initiation failed: {e}")
            raise SwapInitiationError(f"Swap initiation failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Swap initiation returned HTTP {response.status_code}")
            raise SwapInitiationError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return InitiateSwapResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed initiate response: {e}")
            raise SwapInitiationError("Malformed initiate response") from e

    async def get_swap_status(self, swap_id: str) -> SwapStatusResponse:
        """Fetch the current status of a swap.

        Raises:
            SwapNotFoundError: The resolver does not know this swap ID
            StatusPollError: Any other transport or payload failure
        """
        client = await self._get_client()
        try:
            response = await client.get(f"/swap/status/{swap_id}")
        except httpx.HTTPError as e:
            raise StatusPollError(f"Status request failed: {e}") from e

        if response.status_code == 404 or _is_not_found_payload(response):
            raise SwapNotFoundError(swap_id, status_code=response.status_code)

        if response.status_code != 200:
            raise StatusPollError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return SwapStatusResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise StatusPollError("Malformed status response") from e

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ExchangeAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False


def _is_not_found_payload(response: httpx.Response) -> bool:
    """Check for an error body like {"error": "Swap not found"}."""
    try:
        data = response.json()
    except ValueError:
        return False
    if not isinstance(data, dict) or "status" in data:
        return False
    error = data.get("error")
    return isinstance(error, str) and "not found" in error.lower()
