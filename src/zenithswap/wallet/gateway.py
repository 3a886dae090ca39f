"""Wallet gateway: the single source of truth for wallet connectivity.

The gateway owns the connection state (address + chain), keeps the user on
the target network, and turns wallet prompts into application errors:

- user closed or declined a signing prompt -> SignatureRejectedError
- prompt left unanswered past the timeout  -> WalletPromptTimeoutError
- signing without a connected account      -> WalletNotConnectedError

The connected flag and address are persisted so a restarted session can pick
the wallet up again without a new account prompt.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from eth_utils import is_hexstr

from zenithswap.chains import POLYGON_AMOY, TargetNetwork, network_name, parse_chain_id
from zenithswap.errors import (
    NetworkMismatchError,
    PersistenceError,
    SignatureRejectedError,
    WalletConnectionError,
    WalletError,
    WalletNotConnectedError,
    WalletPromptTimeoutError,
)
from zenithswap.storage.base import KeyValueStore
from zenithswap.wallet.keys import REFUND_KEY_MESSAGE, derive_refund_key
from zenithswap.wallet.provider import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    UNRECOGNIZED_CHAIN,
    ProviderRpcError,
    WalletProvider,
)

logger = logging.getLogger(__name__)

WALLET_CONNECTED_KEY = "walletConnected"
WALLET_ADDRESS_KEY = "walletAddress"


@dataclass(frozen=True)
class WalletConnection:
    """Current wallet connection."""

    address: Optional[str] = None
    chain_id: Optional[int] = None

    @property
    def connected(self) -> bool:
        return self.address is not None


def _short(address: Optional[str]) -> str:
    if not address:
        return "(none)"
    return address[:10] + "..." if len(address) > 10 else address


def _unsubscriber(listeners: list, callback: Callable) -> Callable[[], None]:
    def unsubscribe() -> None:
        if callback in listeners:
            listeners.remove(callback)

    return unsubscribe


class WalletGateway:
    """Connection lifecycle, chain enforcement and signing for one wallet."""

    def __init__(
        self,
        provider: WalletProvider,
        store: KeyValueStore,
        network: TargetNetwork = POLYGON_AMOY,
        prompt_timeout: Optional[float] = None,
    ):
        """Initialize the gateway.

        Args:
            provider: Wallet provider to talk to
            store: Session store for the connected flag and address
            network: Chain the wallet must be on
            prompt_timeout: Seconds to wait for a user prompt (None = forever)
        """
        self.provider = provider
        self.store = store
        self.network = network
        self.prompt_timeout = prompt_timeout
        self._connection = WalletConnection()
        self._account_callbacks: list[Callable[[list[str]], None]] = []
        self._chain_callbacks: list[Callable[[int], None]] = []

        self.provider.on(ACCOUNTS_CHANGED, self._handle_accounts_changed)
        self.provider.on(CHAIN_CHANGED, self._handle_chain_changed)

    @property
    def connection(self) -> WalletConnection:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection.connected

    @property
    def address(self) -> Optional[str]:
        return self._connection.address

    # ======================
    # Connection lifecycle
    # ======================

    async def connect(self) -> str:
        """Request account access and connect.

        Returns:
            The connected EVM address

        Raises:
            WalletConnectionError: Access was refused or no account exposed
        """
        try:
            accounts = await self._request("eth_requestAccounts")
        except ProviderRpcError as e:
            logger.error(f"Error connecting wallet: {e}")
            raise WalletConnectionError(f"Wallet connection failed: {e}") from e
        except WalletPromptTimeoutError:
            logger.error("Wallet connection prompt timed out")
            raise

        if not accounts:
            raise WalletConnectionError("No accounts found")

        self._connection = WalletConnection(address=accounts[0], chain_id=await self._safe_chain_id())
        self._persist_connection()
        logger.info(f"Wallet connected: {_short(self.address)} (chain={self._connection.chain_id})")

        # Not fatal: quoting re-checks the network and reports the mismatch
        if await self.ensure_correct_network():
            logger.info(f"Network check passed - connected to {self.network.name}")
        else:
            logger.warning(f"Network check failed - wallet is not on {self.network.name}")

        return self.address

    def disconnect(self) -> None:
        """Forget the connection and the persisted flag."""
        if self.is_connected:
            logger.info(f"Wallet disconnected: {_short(self.address)}")
        self._connection = WalletConnection()
        self._clear_persisted_connection()

    async def restore_from_storage(self) -> bool:
        """Reconnect silently if the wallet was connected in an earlier session.

        Returns:
            True if the connection was restored
        """
        try:
            was_connected = self.store.get(WALLET_CONNECTED_KEY) == "true"
            stored_address = self.store.get(WALLET_ADDRESS_KEY)
        except PersistenceError as e:
            logger.error(f"Cannot read wallet persistence: {e}")
            return False

        if not was_connected or not stored_address:
            logger.debug("No stored wallet connection")
            return False

        try:
            accounts = await self.provider.request("eth_accounts")
        except ProviderRpcError as e:
            logger.error(f"Error restoring wallet connection: {e}")
            self._clear_persisted_connection()
            return False

        authorized = [a.lower() for a in accounts or []]
        if stored_address.lower() not in authorized:
            logger.info("Stored wallet no longer authorized, clearing storage")
            self._clear_persisted_connection()
            return False

        address = accounts[authorized.index(stored_address.lower())]
        self._connection = WalletConnection(address=address, chain_id=await self._safe_chain_id())
        logger.info(f"Restored wallet connection from storage: {_short(address)}")
        return True

    # ======================
    # Network
    # ======================

    async def get_chain_id(self) -> int:
        """Ask the wallet for its current chain."""
        return parse_chain_id(await self.provider.request("eth_chainId"))

    async def ensure_correct_network(self) -> bool:
        """Make sure the wallet is on the target chain.

        Tries wallet_switchEthereumChain, and wallet_addEthereumChain when the
        wallet does not know the chain. Never raises.

        Returns:
            True if the wallet is on the target chain afterwards
        """
        try:
            current = await self.get_chain_id()
        except (ProviderRpcError, ValueError) as e:
            logger.error(f"Error getting chain ID: {e}")
            return False

        self._set_chain(current)
        if current == self.network.chain_id:
            return True

        logger.warning(
            "Wrong network: current %s, required %s",
            network_name(current),
            self.network.name,
        )

        try:
            await self._request(
                "wallet_switchEthereumChain", [{"chainId": self.network.hex_chain_id}]
            )
        except ProviderRpcError as switch_error:
            if switch_error.code != UNRECOGNIZED_CHAIN:
                logger.error(f"Failed to switch network: {switch_error}")
                return False
            try:
                await self._request("wallet_addEthereumChain", [self.network.add_chain_params()])
            except (ProviderRpcError, WalletPromptTimeoutError) as add_error:
                logger.error(f"Failed to add network: {add_error}")
                return False
        except WalletPromptTimeoutError as e:
            logger.error(f"Failed to switch network: {e}")
            return False

        self._set_chain(self.network.chain_id)
        return True

    async def require_correct_network(self) -> None:
        """Like ensure_correct_network, but raise if the wallet stays off target.

        Raises:
            NetworkMismatchError: The wallet is not on the target chain
        """
        if not await self.ensure_correct_network():
            raise NetworkMismatchError(
                self._connection.chain_id, self.network.chain_id, self.mismatch_message()
            )

    def mismatch_message(self) -> str:
        """User-facing text for a failed network check."""
        return (
            f"Wrong network! Current: {network_name(self._connection.chain_id)}, "
            f"Required: {self.network.name}. Please switch networks to continue."
        )

    # ======================
    # Signing
    # ======================

    async def get_refund_key(self) -> str:
        """Derive the BTC refund key from a signature over a fixed message.

        See ``zenithswap.wallet.keys`` -- the derivation is a placeholder.

        Raises:
            WalletNotConnectedError: No wallet connected
            SignatureRejectedError: User declined the prompt
            WalletPromptTimeoutError: Prompt timed out
            WalletError: Signing failed or the signature is malformed
        """
        signature = await self._sign(REFUND_KEY_MESSAGE)
        return derive_refund_key(signature)

    async def sign_order(self, order: dict[str, Any]) -> str:
        """Sign a JSON serialization of an order as proof of intent."""
        message = json.dumps(order, separators=(",", ":"), default=str)
        return await self._sign(message)

    async def _sign(self, message: str) -> str:
        if not self.is_connected:
            raise WalletNotConnectedError("Wallet not connected.")

        data = "0x" + message.encode("utf-8").hex()
        try:
            signature = await self._request("personal_sign", [data, self.address])
        except ProviderRpcError as e:
            if e.is_user_rejection:
                raise SignatureRejectedError("Signature request was rejected.") from e
            logger.error(f"Signing failed: {e}")
            raise WalletError(f"Signing failed: {e}") from e

        # Hex with an even number of digits, 0x prefix optional
        if not isinstance(signature, str) or not is_hexstr(signature) or len(signature) % 2:
            logger.error(f"Wallet returned a malformed signature: {signature!r}")
            raise WalletError("Malformed signature")
        return signature

    # ======================
    # Events
    # ======================

    def on_account_change(self, callback: Callable[[list[str]], None]) -> Callable[[], None]:
        """Subscribe to account changes; returns an unsubscribe function."""
        self._account_callbacks.append(callback)
        return _unsubscriber(self._account_callbacks, callback)

    def on_chain_change(self, callback: Callable[[int], None]) -> Callable[[], None]:
        """Subscribe to chain changes; returns an unsubscribe function."""
        self._chain_callbacks.append(callback)
        return _unsubscriber(self._chain_callbacks, callback)

    def close(self) -> None:
        """Detach from the provider's events."""
        self.provider.remove_listener(ACCOUNTS_CHANGED, self._handle_accounts_changed)
        self.provider.remove_listener(CHAIN_CHANGED, self._handle_chain_changed)

    def _handle_accounts_changed(self, accounts: list[str]) -> None:
        if accounts:
            self._connection = WalletConnection(address=accounts[0], chain_id=self._connection.chain_id)
            self._persist_connection()
            logger.info(f"Wallet account changed: {_short(accounts[0])}")
        else:
            self.disconnect()

        for callback in list(self._account_callbacks):
            callback(list(accounts))

    def _handle_chain_changed(self, chain_id: Any) -> None:
        try:
            parsed = parse_chain_id(chain_id)
        except ValueError:
            logger.warning(f"Ignoring unparseable chain ID: {chain_id!r}")
            return
        self._set_chain(parsed)
        logger.info(f"Wallet chain changed: {network_name(parsed)}")

        for callback in list(self._chain_callbacks):
            callback(parsed)

    # ======================
    # Internals
    # ======================

    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a request that may prompt the user, honouring the timeout."""
        if self.prompt_timeout is None:
            return await self.provider.request(method, params)
        try:
            return await asyncio.wait_for(
                self.provider.request(method, params), timeout=self.prompt_timeout
            )
        except asyncio.TimeoutError:
            raise WalletPromptTimeoutError(
                f"Wallet did not answer {method} within {self.prompt_timeout}s"
            )

    async def _safe_chain_id(self) -> Optional[int]:
        try:
            return await self.get_chain_id()
        except (ProviderRpcError, ValueError) as e:
            logger.warning(f"Could not read chain ID: {e}")
            return None

    def _set_chain(self, chain_id: Optional[int]) -> None:
        self._connection = WalletConnection(address=self._connection.address, chain_id=chain_id)

    def _persist_connection(self) -> None:
        try:
            self.store.set(WALLET_CONNECTED_KEY, "true")
            self.store.set(WALLET_ADDRESS_KEY, self._connection.address or "")
        except PersistenceError as e:
            logger.error(f"Failed to persist wallet connection: {e}")

    def _clear_persisted_connection(self) -> None:
        try:
            self.store.remove(WALLET_CONNECTED_KEY)
            self.store.remove(WALLET_ADDRESS_KEY)
        except PersistenceError as e:
            logger.error(f"Failed to clear wallet connection: {e}")
