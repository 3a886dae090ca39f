"""Network and token metadata for the BTC <-> EVM swap.

Bitcoin is not an EVM chain, so it is addressed with the pseudo chain ID 0 and
the pseudo token address "BTC". Native EVM currencies use the zero address.
"""

from dataclasses import dataclass, field
from typing import Optional

BTC_CHAIN_ID = 0
BTC_TOKEN_ADDRESS = "BTC"
BTC_DECIMALS = 8

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class NativeCurrency:
    """Native currency of an EVM chain."""

    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class TargetNetwork:
    """The EVM chain the wallet must be connected to."""

    chain_id: int
    name: str
    rpc_urls: tuple[str, ...]
    native_currency: NativeCurrency
    explorer_urls: tuple[str, ...] = field(default_factory=tuple)

    @property
    def hex_chain_id(self) -> str:
        """Chain ID in the 0x-prefixed form wallets speak."""
        return hex(self.chain_id)

    def add_chain_params(self) -> dict:
        """Parameters for a wallet_addEthereumChain request."""
        return {
            "chainId": self.hex_chain_id,
            "chainName": self.name,
            "rpcUrls": list(self.rpc_urls),
            "nativeCurrency": {
                "name": self.native_currency.name,
                "symbol": self.native_currency.symbol,
                "decimals": self.native_currency.decimals,
            },
            "blockExplorerUrls": list(self.explorer_urls),
        }


POLYGON_AMOY = TargetNetwork(
    chain_id=80002,
    name="Polygon Amoy",
    rpc_urls=("https://rpc-amoy.polygon.technology/",),
    native_currency=NativeCurrency(name="POL", symbol="POL"),
    explorer_urls=("https://amoy.polygonscan.com/",),
)

# Names shown when the wallet sits on the wrong chain
NETWORK_NAMES: dict[int, str] = {
    1: "Ethereum Mainnet",
    137: "Polygon Mainnet",
    80001: "Polygon Mumbai (Deprecated)",
    80002: "Polygon Amoy",
    1337: "Local Testnet (1337)",
    31337: "Local Testnet (31337)",
}


def network_name(chain_id: Optional[int]) -> str:
    """Human-readable name for a chain ID."""
    if chain_id is None:
        return "Unknown"
    return NETWORK_NAMES.get(chain_id, f"Unknown ({hex(chain_id)})")


def parse_chain_id(value) -> int:
    """Parse a chain ID reported by a wallet (hex string, decimal string or int)."""
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


# ======================
# Token registry
# ======================


@dataclass(frozen=True)
class TokenInfo:
    """Display metadata for a token."""

    symbol: str
    decimals: int


TOKENS: dict[tuple[int, str], TokenInfo] = {
    (BTC_CHAIN_ID, BTC_TOKEN_ADDRESS.lower()): TokenInfo("BTC", BTC_DECIMALS),
    (80002, NATIVE_TOKEN_ADDRESS): TokenInfo("POL", 18),
    (137, NATIVE_TOKEN_ADDRESS): TokenInfo("POL", 18),
    (1, NATIVE_TOKEN_ADDRESS): TokenInfo("ETH", 18),
    (1337, NATIVE_TOKEN_ADDRESS): TokenInfo("ETH", 18),
    (31337, NATIVE_TOKEN_ADDRESS): TokenInfo("ETH", 18),
}


def resolve_token(chain_id: int, token_address: str) -> TokenInfo:
    """Look up a token, falling back to a shortened address for unknown tokens."""
    address = token_address.lower()
    info = TOKENS.get((chain_id, address))
    if info is not None:
        return info
    if chain_id == BTC_CHAIN_ID or address == BTC_TOKEN_ADDRESS.lower():
        return TokenInfo("BTC", BTC_DECIMALS)
    if address == NATIVE_TOKEN_ADDRESS:
        return TokenInfo("ETH", 18)
    short = f"{token_address[:6]}...{token_address[-4:]}" if len(token_address) > 10 else token_address
    return TokenInfo(short, 18)


def is_btc_token(chain_id: int, token_address: str) -> bool:
    """Check whether a (chain, token) pair designates Bitcoin."""
    return chain_id == BTC_CHAIN_ID or token_address.upper() == BTC_TOKEN_ADDRESS
