"""Input validation for swap amounts and BTC destination addresses.

The validators are pure synchronous predicates. ``Debouncer`` only delays
when they run for keystroke-level input; it never changes their answer.
"""

import asyncio
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

MIN_SWAP_AMOUNT = Decimal("0.001")
MAX_SWAP_AMOUNT = Decimal("10")

_BASE58 = "[a-km-zA-HJ-NP-Z1-9]"
_BECH32 = "[ac-hj-np-z02-9]"

# (network family, pattern)
BTC_ADDRESS_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("mainnet", re.compile(rf"^[13]{_BASE58}{{25,34}}$")),
    ("mainnet", re.compile(rf"^bc1{_BECH32}{{39,59}}$")),
    ("testnet", re.compile(rf"^[mn2]{_BASE58}{{25,34}}$")),
    ("testnet", re.compile(rf"^tb1{_BECH32}{{39,59}}$")),
    ("regtest", re.compile(rf"^bcrt1{_BECH32}{{39,59}}$")),
]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


VALID = ValidationResult(True)


def validate_amount(
    raw: Any,
    minimum: Decimal = MIN_SWAP_AMOUNT,
    maximum: Decimal = MAX_SWAP_AMOUNT,
) -> ValidationResult:
    """Validate a human-readable swap amount such as "0.5"."""
    if raw is None or str(raw).strip() == "":
        return ValidationResult(False, "Please enter an amount")

    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return ValidationResult(False, "Please enter a valid number")

    if not value.is_finite():
        return ValidationResult(False, "Please enter a valid number")
    if value <= 0:
        return ValidationResult(False, "Amount must be greater than 0")
    if value < minimum:
        return ValidationResult(False, f"Minimum amount is {minimum}")
    if value > maximum:
        return ValidationResult(False, f"Maximum amount is {maximum} (demo limit)")
    return VALID


def btc_address_network(raw: str) -> Optional[str]:
    """Return the network family of a BTC address, or None if unrecognised."""
    candidate = raw.strip()
    candidates = [candidate]
    # bech32 may be written all upper case
    if candidate.isupper():
        candidates.append(candidate.lower())
    for text in candidates:
        for network, pattern in BTC_ADDRESS_PATTERNS:
            if pattern.match(text):
                return network
    return None


def validate_btc_address(raw: Optional[str]) -> ValidationResult:
    """Validate a BTC destination address."""
    if raw is None or raw.strip() == "":
        return ValidationResult(False, "BTC destination address is required")
    if btc_address_network(raw) is None:
        return ValidationResult(False, "Invalid Bitcoin address format")
    return VALID


class Debouncer:
    """Run a validator only after input has been quiet for ``delay`` seconds."""

    def __init__(
        self,
        validator: Callable[..., ValidationResult],
        delay: float = 0.5,
        on_result: Optional[Callable[[ValidationResult], None]] = None,
    ):
        self.validator = validator
        self.delay = delay
        self.on_result = on_result
        self.last_result: Optional[ValidationResult] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    def __call__(self, *args, **kwargs) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args, kwargs)

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        self.last_result = self.validator(*args, **kwargs)
        if self.on_result:
            self.on_result(self.last_result)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
