"""Swap session state.

A ``SwapSession`` is an immutable snapshot. ``SessionStore`` is the single
writer: every change goes through ``SessionStore.update`` which checks the
session invariants and then notifies subscribers with the new snapshot.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from zenithswap.errors import SwapStateError

logger = logging.getLogger(__name__)


class SwapStatus(str, Enum):
    """Lifecycle of one swap attempt."""

    IDLE = "IDLE"
    QUOTING = "QUOTING"
    QUOTED = "QUOTED"
    INITIATING = "INITIATING"
    PENDING_DEPOSIT = "PENDING_DEPOSIT"
    BTC_CONFIRMING = "BTC_CONFIRMING"
    EVM_FULFILLING = "EVM_FULFILLING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"  # resolver lost the swap; needs manual reconciliation
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def has_swap(self) -> bool:
        """Statuses in which a swap ID may be held."""
        return self in SWAP_STATUSES


TERMINAL_STATUSES = frozenset({
    SwapStatus.COMPLETED,
    SwapStatus.REFUNDED,
    SwapStatus.EXPIRED,
    SwapStatus.UNKNOWN,
    SwapStatus.ERROR,
})

SWAP_STATUSES = frozenset({
    SwapStatus.PENDING_DEPOSIT,
    SwapStatus.BTC_CONFIRMING,
    SwapStatus.EVM_FULFILLING,
    SwapStatus.COMPLETED,
    SwapStatus.REFUNDED,
    SwapStatus.EXPIRED,
    SwapStatus.UNKNOWN,
    SwapStatus.ERROR,
})

# Statuses the resolver reports that are named differently on the client
SERVER_STATUS_ALIASES: dict[str, SwapStatus] = {
    "BTC_CONFIRMED": SwapStatus.BTC_CONFIRMING,
    "EVM_ESCROWED": SwapStatus.EVM_FULFILLING,
    "EVM_FULFILLED": SwapStatus.EVM_FULFILLING,
    "EVM_CLAIMED": SwapStatus.EVM_FULFILLING,
    "BTC_WITHDRAWN": SwapStatus.COMPLETED,
}

DEFAULT_MESSAGES: dict[SwapStatus, str] = {
    SwapStatus.IDLE: "",
    SwapStatus.QUOTING: "Fetching quote...",
    SwapStatus.QUOTED: "Quote received. Review and confirm the swap.",
    SwapStatus.INITIATING: "Initiating swap...",
    SwapStatus.PENDING_DEPOSIT: "Waiting for your BTC deposit.",
    SwapStatus.BTC_CONFIRMING: "BTC deposit detected, waiting for confirmations.",
    SwapStatus.EVM_FULFILLING: "BTC confirmed. Resolver is fulfilling the EVM side.",
    SwapStatus.COMPLETED: "Swap completed.",
    SwapStatus.REFUNDED: "Swap refunded.",
    SwapStatus.EXPIRED: "Swap expired before the deposit arrived.",
    SwapStatus.UNKNOWN: "The resolver no longer knows this swap. Check the transactions before retrying.",
    SwapStatus.ERROR: "An error occurred during the swap process.",
}


def parse_server_status(raw: str) -> Optional[SwapStatus]:
    """Map a status string reported by the resolver onto ``SwapStatus``.

    Returns None for strings the client does not recognise.
    """
    value = (raw or "").strip().upper()
    if value in SERVER_STATUS_ALIASES:
        return SERVER_STATUS_ALIASES[value]
    try:
        return SwapStatus(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Quote:
    """A formatted quote. Amounts are fixed-point display strings."""

    quote_id: str
    from_token: str
    to_token: str
    from_amount: str
    to_amount: str
    rate: str
    fee: str
    fee_token: str
    estimated_time: str


@dataclass(frozen=True)
class SwapSession:
    """Immutable snapshot of the client-side swap state."""

    status: SwapStatus = SwapStatus.IDLE
    status_message: str = ""
    quote: Optional[Quote] = None
    swap_id: Optional[str] = None
    btc_deposit_address: Optional[str] = None
    btc_destination_address: Optional[str] = None
    deposit_expires_at: Optional[datetime] = None
    confirmation_count: int = 0
    evm_tx_hash: Optional[str] = None
    btc_tx_hash: Optional[str] = None

    @property
    def has_quote(self) -> bool:
        return self.quote is not None

    @property
    def is_active(self) -> bool:
        """A swap exists and has not reached a terminal status."""
        return self.swap_id is not None and not self.status.is_terminal

    @property
    def has_tx_hash(self) -> bool:
        return bool(self.evm_tx_hash or self.btc_tx_hash)

    def check_invariants(self) -> None:
        """Raise SwapStateError if the snapshot is inconsistent."""
        if self.swap_id is not None and not self.status.has_swap:
            raise SwapStateError(f"Swap ID held in status {self.status.value}")
        if self.quote is not None and self.status == SwapStatus.IDLE:
            raise SwapStateError("Quote held while IDLE")
        if self.status == SwapStatus.IDLE and self.swap_id is not None:
            raise SwapStateError("Swap ID held while IDLE")
        if self.confirmation_count < 0:
            raise SwapStateError("Negative confirmation count")
        if self.btc_deposit_address is not None and self.swap_id is None:
            raise SwapStateError("Deposit address without swap ID")


SessionListener = Callable[[SwapSession], None]


class SessionStore:
    """Single-writer container for the current ``SwapSession``."""

    def __init__(self, initial: Optional[SwapSession] = None):
        self._session = initial or SwapSession()
        self._session.check_invariants()
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> SwapSession:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes) -> SwapSession:
        """Apply changes, check invariants and notify listeners.

        A status change without an explicit message picks the default
        message for the new status.
        """
        status = changes.get("status")
        if status is not None and "status_message" not in changes:
            changes["status_message"] = DEFAULT_MESSAGES[status]

        new_session = replace(self._session, **changes)
        new_session.check_invariants()

        old_status = self._session.status
        self._session = new_session
        if new_session.status != old_status:
            logger.info(
                "Swap status %s -> %s: %s",
                old_status.value,
                new_session.status.value,
                new_session.status_message,
            )

        self._notify()
        return new_session

    def replace_session(self, session: SwapSession) -> SwapSession:
        """Swap in a whole snapshot (used on restore and reset)."""
        session.check_invariants()
        self._session = session
        self._notify()
        return session

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._session)
            except Exception as e:
                logger.error(f"Session listener failed: {e}")
