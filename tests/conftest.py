"""Global test fixtures for the showup-escrow test suite."""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest

from showup_escrow import (
    Challenge,
    EscrowLedger,
    FeeConfig,
    InMemoryMirror,
    InMemoryTokenVault,
    ManualClock,
)
from showup_escrow.constants import USDC_UNIT

# ============================================================================
# Identities and amounts
# ============================================================================

OWNER = "did:showup:owner"
ADMIN = "did:showup:admin"
TREASURY = "did:showup:treasury"
FEE_RECIPIENT = "did:showup:fees"
STRANGER = "did:showup:stranger"
G1 = "did:showup:g1"
G2 = "did:showup:g2"
G3 = "did:showup:g3"

START_TIME = 1_700_000_000
DAY = 24 * 60 * 60
AMOUNT = 100 * USDC_UNIT  # 100 USDC
DURATION = 30 * DAY


def guarantor_ids(count: int) -> list[str]:
    """Distinct guarantor identities g1..gN."""
    return [f"did:showup:g{i}" for i in range(1, count + 1)]


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Slow tests (>5s)")


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Any:
    """Remove all SHOWUP_ environment variables and cached config."""
    from showup_escrow.config import clear_config_cache, clear_escrow_config

    for key in list(os.environ.keys()):
        if key.startswith("SHOWUP_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    clear_escrow_config()
    yield
    clear_config_cache()
    clear_escrow_config()


# ============================================================================
# Ledger Fixtures
# ============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START_TIME)


@pytest.fixture
def vault() -> InMemoryTokenVault:
    return InMemoryTokenVault({OWNER: 1_000 * USDC_UNIT})


@pytest.fixture
def mirror() -> InMemoryMirror:
    return InMemoryMirror()


@pytest.fixture
def ledger(vault: InMemoryTokenVault, clock: ManualClock, mirror: InMemoryMirror) -> EscrowLedger:
    """Ledger with a treasury and no platform fee."""
    return EscrowLedger(
        vault,
        clock,
        admin=ADMIN,
        fee_config=FeeConfig(treasury=TREASURY),
        mirrors=[mirror],
    )


@pytest.fixture
def make_challenge(ledger: EscrowLedger) -> Callable[..., Challenge]:
    """Factory creating challenges on the ``ledger`` fixture."""
    counter = {"n": 0}

    def factory(
        challenge_id: str | None = None,
        owner: str = OWNER,
        guarantors: list[str] | None = None,
        amount: int = AMOUNT,
        duration: int = DURATION,
        metadata_ref: str = "ipfs://challenge",
    ) -> Challenge:
        counter["n"] += 1
        return ledger.create_challenge(
            challenge_id or f"challenge-{counter['n']}",
            owner,
            guarantors if guarantors is not None else [G1, G2, G3],
            amount,
            duration,
            metadata_ref,
        )

    return factory
