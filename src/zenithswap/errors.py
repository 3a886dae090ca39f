"""Exception hierarchy for the swap client.

Failures of user-triggered operations end up as status=ERROR on the swap
session. Caller mistakes (wrong state, missing wallet, bad input) are raised
before anything is mutated.
"""

from typing import Optional


class SwapError(Exception):
    """Base exception for the swap client."""
    pass


class NetworkMismatchError(SwapError):
    """Exception raised when the wallet is on the wrong chain."""

    def __init__(self, current_chain_id: Optional[int], target_chain_id: int, message: str = ""):
        self.current_chain_id = current_chain_id
        self.target_chain_id = target_chain_id
        super().__init__(message or f"Wallet is on chain {current_chain_id}, expected {target_chain_id}")


# ======================
# Wallet
# ======================


class WalletError(SwapError):
    """Exception raised for wallet failures."""
    pass


class WalletNotConnectedError(WalletError):
    """Exception raised when a signer is needed but no wallet is connected."""
    pass


class WalletConnectionError(WalletError):
    """Exception raised when account access could not be obtained."""
    pass


class SignatureRejectedError(WalletError):
    """Exception raised when the user declines a signing prompt."""
    pass


class WalletPromptTimeoutError(WalletError):
    """Exception raised when a wallet prompt is left unanswered too long."""
    pass


# ======================
# Resolver API
# ======================


class ExchangeAPIError(SwapError):
    """Exception raised for resolver backend failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class QuoteFetchError(ExchangeAPIError):
    """Exception raised when a quote could not be fetched."""
    pass


class SwapInitiationError(ExchangeAPIError):
    """Exception raised when a swap could not be initiated."""
    pass


class StatusPollError(ExchangeAPIError):
    """Exception raised for transient failures of the status endpoint."""
    pass


class SwapNotFoundError(StatusPollError):
    """Exception raised when the resolver does not know a swap ID."""

    def __init__(self, swap_id: str, status_code: Optional[int] = 404):
        self.swap_id = swap_id
        super().__init__(f"Swap not found: {swap_id}", status_code)


# ======================
# Session
# ======================


class PersistenceError(SwapError):
    """Exception raised when the session store cannot be read or written."""
    pass


class InvalidInputError(SwapError):
    """Exception raised for invalid amounts or addresses."""
    pass


class SwapStateError(SwapError):
    """Exception raised when an operation is not allowed in the current state."""
    pass
