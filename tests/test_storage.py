"""Tests for key-value stores and the persisted session snapshot."""

import json
from datetime import datetime, timezone

import pytest

from zenithswap.errors import PersistenceError
from zenithswap.storage.base import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from zenithswap.storage.snapshot import (
    SESSION_KEY,
    PersistedSnapshot,
    PersistenceAdapter,
    deserialize_snapshot,
    serialize_snapshot,
)
from zenithswap.swap.state import Quote, SwapSession, SwapStatus

QUOTE = Quote(
    quote_id="q1",
    from_token="POL",
    to_token="BTC",
    from_amount="0.00100000",
    to_amount="0.00100000",
    rate="1.00000000",
    fee="0.00000000",
    fee_token="POL",
    estimated_time="~5 minutes",
)


def pending_session() -> SwapSession:
    return SwapSession(
        status=SwapStatus.BTC_CONFIRMING,
        status_message="1 confirmation",
        quote=QUOTE,
        swap_id="s1",
        btc_deposit_address="bcrt1qm3ftvwuzz3hx8dnwtq5uazfnmptt6qe4nzt3vg",
        btc_destination_address="bcrt1q7dp2ceypu7695utwjwzs3qs2nqxt4060a7yymn",
        deposit_expires_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        confirmation_count=1,
        btc_tx_hash="ab" * 32,
    )


class BrokenStore(KeyValueStore):
    """Store whose every operation fails."""

    def get(self, key):
        raise PersistenceError("disk on fire")

    def set(self, key, value):
        raise PersistenceError("disk on fire")

    def remove(self, key):
        raise PersistenceError("disk on fire")


class TestKeyValueStores:
    """Tests for the store implementations."""

    def test_memory_store(self):
        """Test basic memory store operations."""
        store = MemoryKeyValueStore()

        assert store.get("a") is None
        store.set("a", "1")
        assert store.get("a") == "1"
        assert store.keys() == ["a"]
        store.remove("a")
        store.remove("a")
        assert store.get("a") is None

    def test_json_file_store_persists(self, tmp_path):
        """Test that values survive a new store instance."""
        path = tmp_path / "nested" / "session.json"
        JsonFileKeyValueStore(str(path)).set("walletConnected", "true")

        reopened = JsonFileKeyValueStore(str(path))

        assert reopened.get("walletConnected") == "true"
        assert json.loads(path.read_text()) == {"walletConnected": "true"}
        assert not path.with_suffix(".json.tmp").exists()

    def test_json_file_store_remove(self, tmp_path):
        """Test removing keys from the file store."""
        store = JsonFileKeyValueStore(str(tmp_path / "s.json"))
        store.set("a", "1")
        store.set("b", "2")

        store.remove("a")

        assert store.get("a") is None
        assert store.get("b") == "2"

    def test_json_file_store_corrupt(self, tmp_path):
        """Test that a corrupt file raises PersistenceError."""
        path = tmp_path / "s.json"
        path.write_text("{not json")

        with pytest.raises(PersistenceError):
            JsonFileKeyValueStore(str(path)).get("a")


class TestSnapshotSerialization:
    """Tests for the snapshot schema."""

    def test_round_trip_preserves_session(self):
        """Test that a session survives serialize and deserialize."""
        session = pending_session()

        raw = serialize_snapshot(PersistedSnapshot.from_session(session))
        restored = deserialize_snapshot(raw).to_session()

        assert restored == session

    def test_serialized_blob_is_versioned(self):
        """Test that the blob carries the schema version."""
        raw = serialize_snapshot(PersistedSnapshot.from_session(SwapSession()))

        assert json.loads(raw)["version"] == 1

    def test_legacy_blob_migrated(self):
        """Test reading an unversioned camelCase blob."""
        legacy = {
            "swapStatus": "PENDING_DEPOSIT",
            "statusMessage": "Waiting",
            "swapId": "s9",
            "btcDepositAddress": "bcrt1qdeposit",
            "btcDestinationAddress": "bcrt1qdest",
            "confirmationCount": 0,
            "evmTxHash": None,
            "quote": {
                "quoteId": "q9",
                "fromToken": "POL",
                "toToken": "BTC",
                "fromAmount": "0.00100000",
                "toAmount": "0.00100000",
                "rate": 1,
                "fee": "0.00000000",
                "feeToken": "POL",
                "estimatedTime": "~5 minutes",
            },
        }

        snapshot = deserialize_snapshot(json.dumps(legacy))
        session = snapshot.to_session()

        assert snapshot.version == 1
        assert session.status == SwapStatus.PENDING_DEPOSIT
        assert session.swap_id == "s9"
        assert session.quote.quote_id == "q9"
        assert session.quote.rate == "1"
        assert session.evm_tx_hash is None

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            json.dumps({"version": 99, "status": "IDLE"}),
            json.dumps({"version": "1"}),
            json.dumps({"version": 1, "status": "SIDEWAYS"}),
            json.dumps({"version": 1, "confirmation_count": -1}),
        ],
    )
    def test_invalid_blobs_rejected(self, raw):
        """Test that unreadable blobs raise PersistenceError."""
        with pytest.raises(PersistenceError):
            deserialize_snapshot(raw)


class TestPersistenceAdapter:
    """Tests for the non-fatal persistence adapter."""

    def test_save_and_load(self, store):
        """Test saving under the fixed key and loading back."""
        adapter = PersistenceAdapter(store)
        snapshot = PersistedSnapshot.from_session(pending_session())

        assert adapter.save(snapshot)
        assert store.get(SESSION_KEY) is not None
        assert adapter.load() == snapshot

    def test_load_missing(self, store):
        """Test that nothing stored loads as None."""
        assert PersistenceAdapter(store).load() is None

    def test_load_corrupt_returns_none(self, store):
        """Test that a corrupt blob is treated as no session."""
        store.set(SESSION_KEY, "{broken")

        assert PersistenceAdapter(store).load() is None

    def test_clear(self, store):
        """Test clearing the stored session."""
        adapter = PersistenceAdapter(store)
        adapter.save(PersistedSnapshot.from_session(pending_session()))

        assert adapter.clear()
        assert adapter.load() is None

    def test_store_failures_are_swallowed(self):
        """Test that store errors are reported as False/None, never raised."""
        adapter = PersistenceAdapter(BrokenStore())

        assert adapter.save(PersistedSnapshot.from_session(SwapSession())) is False
        assert adapter.load() is None
        assert adapter.clear() is False
