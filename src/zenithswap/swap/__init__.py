"""Swap session: state, validation, formatting and status polling.

The orchestrator lives in ``zenithswap.swap.orchestrator``; it is not
re-exported here because it depends on ``zenithswap.storage``, which itself
imports the session types from this package.
"""

from zenithswap.swap.poller import StatusPoller
from zenithswap.swap.state import Quote, SessionStore, SwapSession, SwapStatus
from zenithswap.swap.validation import ValidationResult, validate_amount, validate_btc_address

__all__ = [
    "Quote",
    "SessionStore",
    "StatusPoller",
    "SwapSession",
    "SwapStatus",
    "ValidationResult",
    "validate_amount",
    "validate_btc_address",
]
