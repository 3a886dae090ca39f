"""Wallet access: provider interface, local signer and the connection gateway."""

from zenithswap.wallet.gateway import WalletConnection, WalletGateway
from zenithswap.wallet.keys import REFUND_KEY_MESSAGE, derive_refund_key
from zenithswap.wallet.local import LocalAccountProvider
from zenithswap.wallet.provider import ProviderRpcError, WalletProvider

__all__ = [
    "LocalAccountProvider",
    "ProviderRpcError",
    "REFUND_KEY_MESSAGE",
    "WalletConnection",
    "WalletGateway",
    "WalletProvider",
    "derive_refund_key",
]
