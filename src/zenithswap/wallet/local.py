"""Local wallet provider backed by an in-memory private key.

Suitable for:
- Command-line sessions against a testnet
- Tests that need real signatures

WARNING: The private key lives in process memory. Use a browser or hardware
wallet for anything holding real funds.
"""

import logging
from typing import Any, Iterable, Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from zenithswap.chains import parse_chain_id
from zenithswap.wallet.provider import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    UNAUTHORIZED,
    UNRECOGNIZED_CHAIN,
    UNSUPPORTED_METHOD,
    USER_REJECTED,
    ProviderRpcError,
    WalletProvider,
)

logger = logging.getLogger(__name__)


class LocalAccountProvider(WalletProvider):
    """Wallet provider that signs with an eth_account key.

    ``reject_prompts`` makes every user-facing prompt fail with code 4001,
    the same way a user closing the wallet popup would.
    """

    def __init__(
        self,
        private_key: str,
        chain_id: int = 80002,
        known_chains: Optional[Iterable[int]] = None,
        reject_prompts: bool = False,
    ):
        super().__init__()
        self._account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.known_chains: set[int] = set(known_chains) if known_chains is not None else {chain_id}
        self.known_chains.add(chain_id)
        self.reject_prompts = reject_prompts
        self.authorized = False
        self.requests: list[str] = []

    @property
    def address(self) -> str:
        return self._account.address

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        self.requests.append(method)
        params = params or []

        if method == "eth_requestAccounts":
            self._prompt()
            self.authorized = True
            return [self.address]

        if method == "eth_accounts":
            return [self.address] if self.authorized else []

        if method == "eth_chainId":
            return hex(self.chain_id)

        if method == "wallet_switchEthereumChain":
            chain_id = parse_chain_id(params[0]["chainId"])
            if chain_id not in self.known_chains:
                raise ProviderRpcError(
                    UNRECOGNIZED_CHAIN, f"Unrecognized chain ID {hex(chain_id)}"
                )
            self._prompt()
            self.switch_chain(chain_id)
            return None

        if method == "wallet_addEthereumChain":
            chain_params = params[0]
            chain_id = parse_chain_id(chain_params["chainId"])
            self._prompt()
            self.known_chains.add(chain_id)
            logger.info(f"Added chain {chain_params.get('chainName', chain_id)}")
            self.switch_chain(chain_id)
            return None

        if method == "personal_sign":
            if not self.authorized:
                raise ProviderRpcError(UNAUTHORIZED, "Account not authorized")
            self._prompt()
            return self._personal_sign(params[0])

        raise ProviderRpcError(UNSUPPORTED_METHOD, f"Unsupported method {method}")

    def _prompt(self) -> None:
        if self.reject_prompts:
            raise ProviderRpcError(USER_REJECTED, "User rejected the request.")

    def _personal_sign(self, data: str) -> str:
        if data.startswith("0x"):
            message = bytes.fromhex(data[2:])
        else:
            message = data.encode("utf-8")
        signed = Account.sign_message(encode_defunct(primitive=message), self._account.key)
        return "0x" + bytes(signed.signature).hex()

    # User actions outside of any request

    def switch_chain(self, chain_id: int) -> None:
        """Switch chains and emit chainChanged, as the wallet UI would."""
        if chain_id != self.chain_id:
            self.chain_id = chain_id
            self.emit(CHAIN_CHANGED, hex(chain_id))

    def revoke(self) -> None:
        """Revoke the site's account access (emits an empty accountsChanged)."""
        self.authorized = False
        self.emit(ACCOUNTS_CHANGED, [])
