"""Refund key derivation.

PLACEHOLDER, NOT PRODUCTION CRYPTOGRAPHY. The "refund key" sent to the
resolver is sha256 of the wallet's signature over a fixed message, hashed
again with keccak256. It is deterministic for a given wallet and bound to this
application through the message, but it is not a valid secp256k1 public key
and no private key for it exists on the Bitcoin side. A real deployment needs
proper Bitcoin key derivation (e.g. BIP32 from signature entropy) and must
return a compressed public key.
"""

import hashlib

from eth_utils import keccak

# Fixed per-application message; a signature over it is useless to other dApps.
REFUND_KEY_MESSAGE = "Generate my secure Bitcoin refund key for Zenith DeFi swap."


def derive_refund_key(signature: str) -> str:
    """Derive the placeholder refund key (64 hex chars, no 0x) from a signature."""
    sig_hex = signature[2:] if signature.startswith("0x") else signature
    seed = hashlib.sha256(bytes.fromhex(sig_hex)).digest()
    return keccak(seed).hex()
