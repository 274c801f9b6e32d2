"""Tests for challenge id generation and USDC unit helpers."""

from __future__ import annotations

from decimal import Decimal

import pytest

from showup_escrow import format_usdc, generate_challenge_id, parse_usdc


class TestGenerateChallengeId:
    def test_deterministic(self):
        assert generate_challenge_id("alice", 1_700_000_000, 1) == generate_challenge_id("alice", 1_700_000_000, 1)

    def test_format(self):
        challenge_id = generate_challenge_id("alice", 1_700_000_000, "n")
        assert challenge_id.startswith("0x")
        assert len(challenge_id) == 66

    def test_fields_are_not_ambiguous(self):
        """Shifting characters between fields changes the id."""
        assert generate_challenge_id("alice1", 7, "") != generate_challenge_id("alice", 17, "")
        assert generate_challenge_id("a", 1, "bc") != generate_challenge_id("ab", 1, "c")


class TestUsdcUnits:
    @pytest.mark.parametrize(
        "value,units",
        [("100", 100_000_000), ("0.5", 500_000), (Decimal("1.0000005"), 1_000_001), (2, 2_000_000)],
    )
    def test_parse(self, value, units):
        assert parse_usdc(value) == units

    def test_format(self):
        assert format_usdc(100_000_000) == "100.000000"
        assert format_usdc(1) == "0.000001"
