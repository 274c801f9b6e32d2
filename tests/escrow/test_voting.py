"""Tests for Path of Redemption guarantor voting."""

from __future__ import annotations

import pytest
from conftest import G1, G2, G3, OWNER, STRANGER, TREASURY, guarantor_ids

from showup_escrow import (
    AlreadyVotedError,
    ChallengeState,
    InvalidStateError,
    NotGuarantorError,
    TransferFailedError,
    VotingPeriodEndedError,
    compute_required_votes,
)


@pytest.fixture
def open_vote(ledger, clock, make_challenge):
    """Factory: create a challenge and report it failed at its end time."""

    def factory(guarantors=None):
        challenge = make_challenge(guarantors=guarantors)
        clock.set(challenge.end_time)
        return ledger.report_failure(challenge.id, OWNER)

    return factory


class TestRequiredVotes:
    """Strict majority of the original guarantor count."""

    @pytest.mark.parametrize(
        "count,required",
        [(1, 1), (2, 2), (3, 2), (4, 3), (5, 3), (10, 6)],
    )
    def test_compute_required_votes(self, count, required):
        assert compute_required_votes(count) == required

    def test_stored_on_creation(self, ledger, make_challenge):
        challenge = make_challenge(guarantors=guarantor_ids(5))
        assert ledger.get_voting_record(challenge.id).required_votes == 3


class TestCastVote:
    """Tests for cast_vote."""

    def test_records_ballot(self, ledger, open_vote):
        challenge = open_vote()

        ledger.cast_vote(challenge.id, G1, True)
        ledger.cast_vote(challenge.id, G2, False)

        assert ledger.has_voted(challenge.id, G1)
        assert ledger.get_vote(challenge.id, G1) is True
        assert ledger.get_vote(challenge.id, G2) is False
        assert ledger.get_vote(challenge.id, G3) is None
        voting = ledger.get_voting_record(challenge.id)
        assert (voting.yes_count, voting.no_count) == (1, 1)

    def test_single_guarantor_yes_resolves(self, ledger, clock, open_vote):
        challenge = open_vote(guarantors=[G1])

        result = ledger.cast_vote(challenge.id, G1, True)

        assert result.state == ChallengeState.REMEDIATION_ACTIVE
        assert result.remediation_deadline > clock.now()

    def test_already_voted(self, ledger, open_vote):
        challenge = open_vote()
        ledger.cast_vote(challenge.id, G1, True)

        with pytest.raises(AlreadyVotedError):
            ledger.cast_vote(challenge.id, G1, False)
        assert ledger.get_vote(challenge.id, G1) is True
        assert ledger.get_voting_record(challenge.id).no_count == 0

    def test_not_guarantor(self, ledger, open_vote):
        challenge = open_vote()

        with pytest.raises(NotGuarantorError):
            ledger.cast_vote(challenge.id, STRANGER, True)
        with pytest.raises(NotGuarantorError):
            ledger.cast_vote(challenge.id, OWNER, True)

    def test_vote_at_deadline_accepted(self, ledger, clock, open_vote):
        challenge = open_vote()
        clock.set(challenge.voting_deadline)

        ledger.cast_vote(challenge.id, G1, True)

        assert ledger.has_voted(challenge.id, G1)

    def test_vote_after_deadline_rejected(self, ledger, clock, open_vote):
        challenge = open_vote()
        clock.set(challenge.voting_deadline + 1)

        with pytest.raises(VotingPeriodEndedError):
            ledger.cast_vote(challenge.id, G1, True)
        assert not ledger.has_voted(challenge.id, G1)

    def test_vote_on_active_challenge_rejected(self, ledger, make_challenge):
        challenge = make_challenge()

        with pytest.raises(InvalidStateError):
            ledger.cast_vote(challenge.id, G1, True)

    def test_early_no_exit_with_five_guarantors(self, ledger, vault, open_vote):
        """Three no votes out of five make a yes majority impossible."""
        five = guarantor_ids(5)
        challenge = open_vote(guarantors=five)

        ledger.cast_vote(challenge.id, five[0], False)
        ledger.cast_vote(challenge.id, five[1], False)
        assert ledger.get_challenge(challenge.id).state == ChallengeState.FAILED_PENDING_VOTE

        final = ledger.cast_vote(challenge.id, five[2], False)

        assert final.state == ChallengeState.FAILED_FINAL
        assert vault.balance_of(TREASURY) == challenge.amount
        with pytest.raises(InvalidStateError):
            ledger.cast_vote(challenge.id, five[3], True)

    def test_even_split_keeps_vote_open(self, ledger, open_vote):
        """With four guarantors, two no votes still leave room for three yes."""
        four = guarantor_ids(4)
        challenge = open_vote(guarantors=four)

        ledger.cast_vote(challenge.id, four[0], False)
        ledger.cast_vote(challenge.id, four[1], True)
        after = ledger.cast_vote(challenge.id, four[2], True)

        assert after.state == ChallengeState.FAILED_PENDING_VOTE

        resolved = ledger.cast_vote(challenge.id, four[3], True)
        assert resolved.state == ChallengeState.REMEDIATION_ACTIVE

    def test_votes_never_exceed_guarantors(self, ledger, open_vote):
        challenge = open_vote(guarantors=[G1, G2])
        ledger.cast_vote(challenge.id, G1, True)
        ledger.cast_vote(challenge.id, G2, True)

        voting = ledger.get_voting_record(challenge.id)

        assert voting.votes_cast <= voting.guarantor_count
        assert voting.recount() == (2, 0)

    def test_forfeit_transfer_failure_discards_ballot(self, ledger, vault, open_vote):
        """A deciding no vote whose treasury transfer fails leaves no trace."""
        challenge = open_vote(guarantors=[G1, G2])
        vault.block(TREASURY)

        with pytest.raises(TransferFailedError):
            ledger.cast_vote(challenge.id, G1, False)

        assert not ledger.has_voted(challenge.id, G1)
        assert ledger.get_voting_record(challenge.id).no_count == 0
        assert ledger.get_challenge(challenge.id).state == ChallengeState.FAILED_PENDING_VOTE
        assert vault.custody_balance == challenge.amount
        ledger.reconcile()

        vault.unblock(TREASURY)
        final = ledger.cast_vote(challenge.id, G1, False)
        assert final.state == ChallengeState.FAILED_FINAL
