"""Escrow configuration.

Provides escrow-specific configuration with env var support.
Uses a protocol-based injection pattern so the calling application
can provide its own config implementation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .constants import BPS_DENOMINATOR, MAX_FEE_BPS
from .exceptions import InvalidFeeError


@runtime_checkable
class EscrowConfigProtocol(Protocol):
    """Protocol defining escrow configuration requirements.

    This allows the ledger to depend on a config interface rather than
    a concrete settings class. Calling applications should implement
    this protocol and register via set_escrow_config().
    """

    @property
    def admin_identity(self) -> str | None:
        """Identity allowed to change fee and treasury settings."""
        ...

    @property
    def treasury(self) -> str | None:
        """Destination for forfeited deposits."""
        ...

    @property
    def fee_recipient(self) -> str | None:
        """Destination for platform fees."""
        ...

    @property
    def platform_fee_bps(self) -> int:
        """Platform fee in basis points, applied on successful completion."""
        ...


@dataclass
class EscrowSettings:
    """Concrete escrow configuration.

    Reads from environment variables with SHOWUP_ prefix.
    Can be instantiated directly for testing.
    """

    # Administration
    admin_identity: str | None = None

    # Disbursement targets
    treasury: str | None = None
    fee_recipient: str | None = None
    platform_fee_bps: int = 0

    # Query surface
    api_prefix: str = "/api/v1"

    @classmethod
    def from_env(cls) -> EscrowSettings:
        """Create settings from environment variables."""
        return cls(
            admin_identity=os.environ.get("SHOWUP_ADMIN_IDENTITY"),
            treasury=os.environ.get("SHOWUP_TREASURY") or None,
            fee_recipient=os.environ.get("SHOWUP_FEE_RECIPIENT") or None,
            platform_fee_bps=int(os.environ.get("SHOWUP_PLATFORM_FEE_BPS", "0")),
            api_prefix=os.environ.get("SHOWUP_API_PREFIX", "/api/v1"),
        )


@dataclass
class FeeConfig:
    """Administrative disbursement settings held by a ledger.

    Read at the moment a payout is computed, so changes only affect
    disbursements that happen after them.
    """

    platform_fee_bps: int = 0
    fee_recipient: str | None = None
    treasury: str | None = None

    def __post_init__(self) -> None:
        validate_fee_bps(self.platform_fee_bps)

    def compute_fee(self, amount: int) -> int:
        """Fee owed on a successful completion of ``amount``."""
        if not self.fee_recipient or self.platform_fee_bps == 0:
            return 0
        return amount * self.platform_fee_bps // BPS_DENOMINATOR

    def to_dict(self) -> dict[str, int | str | None]:
        """Convert to dictionary."""
        return {
            "platform_fee_bps": self.platform_fee_bps,
            "fee_recipient": self.fee_recipient,
            "treasury": self.treasury,
        }


def validate_fee_bps(fee_bps: int) -> None:
    """Reject non-integer fees and fees outside [0, MAX_FEE_BPS]."""
    if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
        raise InvalidFeeError(
            f"Platform fee must be an integer number of bps, got {fee_bps!r}",
            {"fee_bps": repr(fee_bps)},
        )
    if fee_bps < 0 or fee_bps > MAX_FEE_BPS:
        raise InvalidFeeError(
            f"Platform fee must be between 0 and {MAX_FEE_BPS} bps, got {fee_bps}",
            {"fee_bps": fee_bps, "max_fee_bps": MAX_FEE_BPS},
        )


# Global escrow config - set by application layer at startup
_escrow_config: EscrowConfigProtocol | None = None
_core_settings: EscrowSettings | None = None


def set_escrow_config(config: EscrowConfigProtocol) -> None:
    """Set the global escrow config.

    Called by the application layer at startup to inject its settings.

    Args:
        config: An object implementing EscrowConfigProtocol
    """
    global _escrow_config
    _escrow_config = config


def get_escrow_config() -> EscrowConfigProtocol:
    """Get the escrow config used by ``EscrowLedger.from_settings``.

    Returns:
        The injected config if one was set, else settings read from
        ``SHOWUP_`` environment variables.
    """
    if _escrow_config is None:
        return get_config()
    return _escrow_config


def clear_escrow_config() -> None:
    """Clear the global escrow config. For testing."""
    global _escrow_config
    _escrow_config = None


def get_config() -> EscrowSettings:
    """Get escrow settings loaded from the environment (cached)."""
    global _core_settings
    if _core_settings is None:
        _core_settings = EscrowSettings.from_env()
    return _core_settings


def clear_config_cache() -> None:
    """Clear the config cache. For testing."""
    global _core_settings
    _core_settings = None
