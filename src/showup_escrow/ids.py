"""Challenge identifiers and asset unit helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from cryptography.hazmat.primitives import hashes

from .constants import USDC_DECIMALS, USDC_UNIT


def generate_challenge_id(owner: str, timestamp: int, nonce: str | int) -> str:
    """Content-addressed challenge id for (owner, timestamp, nonce).

    Returns a 0x-prefixed SHA-256 hex digest. The fields are length
    prefixed so distinct tuples never share an encoding.
    """
    digest = hashes.Hash(hashes.SHA256())
    for part in (owner, str(int(timestamp)), str(nonce)):
        encoded = part.encode("utf-8")
        digest.update(len(encoded).to_bytes(4, "big"))
        digest.update(encoded)
    return "0x" + digest.finalize().hex()


def parse_usdc(amount: str | int | float | Decimal) -> int:
    """Human readable USDC amount to smallest units (6 decimals)."""
    value = Decimal(str(amount))
    return int((value * USDC_UNIT).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_usdc(units: int) -> str:
    """Smallest units to a fixed 6-decimal string, e.g. ``100.000000``."""
    return f"{Decimal(units).scaleb(-USDC_DECIMALS):.{USDC_DECIMALS}f}"
