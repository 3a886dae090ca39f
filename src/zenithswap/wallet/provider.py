"""Wallet provider interface.

Mirrors the EIP-1193 surface the gateway needs: a single ``request`` call plus
``accountsChanged`` / ``chainChanged`` events. Errors carry the standard
provider error codes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# EIP-1193 / MetaMask error codes
USER_REJECTED = 4001
UNAUTHORIZED = 4100
UNSUPPORTED_METHOD = 4200
UNRECOGNIZED_CHAIN = 4902

ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"


class ProviderRpcError(Exception):
    """Error returned by a wallet provider request."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        self.code = code
        self.data = data
        super().__init__(f"[{code}] {message}")

    @property
    def is_user_rejection(self) -> bool:
        return self.code == USER_REJECTED


class WalletProvider(ABC):
    """Abstract wallet provider.

    Implementations answer at least: eth_requestAccounts, eth_accounts,
    eth_chainId, wallet_switchEthereumChain, wallet_addEthereumChain and
    personal_sign.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable]] = {}

    @abstractmethod
    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Send an RPC request to the wallet.

        Raises:
            ProviderRpcError: The wallet refused or failed the request
        """
        pass

    def on(self, event: str, handler: Callable) -> None:
        """Subscribe to a provider event."""
        self._listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        """Unsubscribe from a provider event."""
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args) -> None:
        """Deliver an event to all subscribers."""
        for handler in list(self._listeners.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Provider {event} handler failed: {e}")
