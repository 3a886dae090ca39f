"""Versioned persistence of the swap session.

The snapshot is one JSON blob under a fixed key. Version 1 is the current
schema; an unversioned blob in the older camelCase layout is migrated on read.
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from zenithswap.errors import PersistenceError
from zenithswap.storage.base import KeyValueStore
from zenithswap.swap.state import Quote, SwapSession, SwapStatus

logger = logging.getLogger(__name__)

SESSION_KEY = "zenithSwapSession"
SNAPSHOT_VERSION = 1


class QuoteRecord(BaseModel):
    """Persisted form of a ``Quote``."""

    quote_id: str
    from_token: str
    to_token: str
    from_amount: str
    to_amount: str
    rate: str
    fee: str
    fee_token: str
    estimated_time: str

    @classmethod
    def from_quote(cls, quote: Quote) -> "QuoteRecord":
        return cls(**asdict(quote))

    def to_quote(self) -> Quote:
        return Quote(**self.model_dump())


class PersistedSnapshot(BaseModel):
    """Subset of the session needed to resume after a restart."""

    version: int = SNAPSHOT_VERSION
    status: SwapStatus = SwapStatus.IDLE
    status_message: str = ""
    quote: Optional[QuoteRecord] = None
    swap_id: Optional[str] = None
    btc_deposit_address: Optional[str] = None
    btc_destination_address: Optional[str] = None
    deposit_expires_at: Optional[datetime] = None
    confirmation_count: int = Field(default=0, ge=0)
    evm_tx_hash: Optional[str] = None
    btc_tx_hash: Optional[str] = None

    @classmethod
    def from_session(cls, session: SwapSession) -> "PersistedSnapshot":
        return cls(
            status=session.status,
            status_message=session.status_message,
            quote=QuoteRecord.from_quote(session.quote) if session.quote else None,
            swap_id=session.swap_id,
            btc_deposit_address=session.btc_deposit_address,
            btc_destination_address=session.btc_destination_address,
            deposit_expires_at=session.deposit_expires_at,
            confirmation_count=session.confirmation_count,
            evm_tx_hash=session.evm_tx_hash,
            btc_tx_hash=session.btc_tx_hash,
        )

    def to_session(self) -> SwapSession:
        return SwapSession(
            status=self.status,
            status_message=self.status_message,
            quote=self.quote.to_quote() if self.quote else None,
            swap_id=self.swap_id,
            btc_deposit_address=self.btc_deposit_address,
            btc_destination_address=self.btc_destination_address,
            deposit_expires_at=self.deposit_expires_at,
            confirmation_count=self.confirmation_count,
            evm_tx_hash=self.evm_tx_hash,
            btc_tx_hash=self.btc_tx_hash,
        )


# Unversioned blob field -> version 1 field
_LEGACY_FIELDS = {
    "swapStatus": "status",
    "statusMessage": "status_message",
    "quote": "quote",
    "swapId": "swap_id",
    "btcDepositAddress": "btc_deposit_address",
    "btcDestinationAddress": "btc_destination_address",
    "confirmationCount": "confirmation_count",
    "evmTxHash": "evm_tx_hash",
    "btcTxHash": "btc_tx_hash",
}

_LEGACY_QUOTE_FIELDS = {
    "quoteId": "quote_id",
    "fromToken": "from_token",
    "toToken": "to_token",
    "fromAmount": "from_amount",
    "toAmount": "to_amount",
    "rate": "rate",
    "fee": "fee",
    "feeToken": "fee_token",
    "estimatedTime": "estimated_time",
}


def _migrate_legacy(data: dict[str, Any]) -> dict[str, Any]:
    """Convert an unversioned camelCase blob to the version 1 layout."""
    migrated: dict[str, Any] = {"version": SNAPSHOT_VERSION}
    for old, new in _LEGACY_FIELDS.items():
        if data.get(old) is not None:
            migrated[new] = data[old]

    quote = migrated.get("quote")
    if isinstance(quote, dict):
        migrated["quote"] = {
            new: str(quote[old]) for old, new in _LEGACY_QUOTE_FIELDS.items() if old in quote
        }
    return migrated


def serialize_snapshot(snapshot: PersistedSnapshot) -> str:
    """Serialize a snapshot to JSON."""
    return snapshot.model_dump_json()


def deserialize_snapshot(raw: str) -> PersistedSnapshot:
    """Parse a stored blob, migrating older layouts.

    Raises:
        PersistenceError: The blob is not valid JSON or not a known schema
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise PersistenceError(f"Corrupt session snapshot: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError("Corrupt session snapshot: not an object")

    if "version" not in data:
        data = _migrate_legacy(data)
    elif not isinstance(data["version"], int) or data["version"] > SNAPSHOT_VERSION:
        raise PersistenceError(f"Unsupported snapshot version {data['version']}")

    try:
        return PersistedSnapshot.model_validate(data)
    except ValidationError as e:
        raise PersistenceError(f"Invalid session snapshot: {e}") from e


class PersistenceAdapter:
    """Reads and writes the session snapshot under one fixed key.

    Failures are logged and swallowed; the session keeps running in memory.
    """

    def __init__(self, store: KeyValueStore, key: str = SESSION_KEY):
        self.store = store
        self.key = key

    def save(self, snapshot: PersistedSnapshot) -> bool:
        try:
            self.store.set(self.key, serialize_snapshot(snapshot))
            return True
        except PersistenceError as e:
            logger.error(f"Failed to persist session: {e}")
            return False

    def load(self) -> Optional[PersistedSnapshot]:
        try:
            raw = self.store.get(self.key)
            if raw is None:
                return None
            return deserialize_snapshot(raw)
        except PersistenceError as e:
            logger.error(f"Failed to load session, starting fresh: {e}")
            return None

    def clear(self) -> bool:
        try:
            self.store.remove(self.key)
            return True
        except PersistenceError as e:
            logger.error(f"Failed to clear persisted session: {e}")
            return False
