"""Tests for the expired-deadline sweep."""

from __future__ import annotations

from conftest import DAY, G1, G2, OWNER, TREASURY

from showup_escrow import REMEDIATION_PERIOD, VOTING_PERIOD, ChallengeState, sweep_expired


class TestSweepExpired:
    """Tests for sweep_expired."""

    def test_nothing_to_do(self, ledger, make_challenge):
        make_challenge()

        result = sweep_expired(ledger)

        assert result.total == 0
        assert result.errors == {}

    def test_finalizes_expired_votes_and_remediations(self, ledger, vault, clock, make_challenge):
        voting = make_challenge(guarantors=[G1, G2])
        redeemed = make_challenge(guarantors=[G1])
        still_open = make_challenge(guarantors=[G1, G2])
        clock.set(voting.end_time)
        ledger.report_failure(voting.id, OWNER)
        ledger.report_failure(redeemed.id, OWNER)
        ledger.cast_vote(redeemed.id, G1, True)

        clock.advance(REMEDIATION_PERIOD + 1)
        reopened = ledger.report_failure(still_open.id, OWNER)
        assert reopened.voting_deadline == clock.now() + VOTING_PERIOD

        result = sweep_expired(ledger)

        assert result.finalized_votes == [voting.id]
        assert result.finalized_remediations == [redeemed.id]
        assert ledger.get_challenge(voting.id).state == ChallengeState.FAILED_FINAL
        assert ledger.get_challenge(redeemed.id).state == ChallengeState.FAILED_FINAL
        assert ledger.get_challenge(still_open.id).state == ChallengeState.FAILED_PENDING_VOTE
        assert vault.balance_of(TREASURY) == voting.amount + redeemed.amount

    def test_records_errors_and_continues(self, ledger, vault, clock, make_challenge):
        first = make_challenge(guarantors=[G1])
        second = make_challenge(guarantors=[G1])
        clock.set(first.end_time)
        ledger.report_failure(first.id, OWNER)
        ledger.report_failure(second.id, OWNER)
        clock.advance(DAY + 1)
        vault.block(TREASURY)

        result = sweep_expired(ledger)

        assert result.total == 0
        assert result.errors == {first.id: "TRANSFER_FAILED", second.id: "TRANSFER_FAILED"}

        vault.unblock(TREASURY)
        assert sweep_expired(ledger).total == 2
        ledger.reconcile()
