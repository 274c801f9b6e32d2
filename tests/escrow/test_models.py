"""Tests for escrow data classes, enums and exceptions."""

from __future__ import annotations

from conftest import G1, G2, OWNER, START_TIME

from showup_escrow import (
    ALLOWED_TRANSITIONS,
    Ballot,
    Challenge,
    ChallengeNotFoundError,
    ChallengeState,
    Disbursement,
    EscrowError,
    InvalidStateError,
    NotGuarantorError,
    VotingRecord,
)
from showup_escrow.exceptions import AuthorizationError, NotFound, VotingPeriodEndedError


class TestChallengeState:
    """Tests for the lifecycle enum."""

    def test_terminal_states(self):
        assert ChallengeState.COMPLETED.is_terminal
        assert ChallengeState.FAILED_FINAL.is_terminal
        assert not ChallengeState.ACTIVE.is_terminal
        assert not ChallengeState.FAILED_PENDING_VOTE.is_terminal
        assert not ChallengeState.REMEDIATION_ACTIVE.is_terminal

    def test_terminal_states_have_no_exits(self):
        assert not ALLOWED_TRANSITIONS[ChallengeState.COMPLETED]
        assert not ALLOWED_TRANSITIONS[ChallengeState.FAILED_FINAL]

    def test_no_path_back_to_active(self):
        for targets in ALLOWED_TRANSITIONS.values():
            assert ChallengeState.ACTIVE not in targets


class TestChallenge:
    """Tests for the Challenge dataclass."""

    def test_round_trip_with_disbursement(self):
        challenge = Challenge(
            id="c1",
            owner=OWNER,
            amount=5_000_000,
            created_at=START_TIME,
            end_time=START_TIME + 60,
            state=ChallengeState.COMPLETED,
            disbursement=Disbursement(recipient=OWNER, amount=4_500_000, fee=500_000, fee_recipient="fees"),
        )

        data = challenge.to_dict()
        assert data["state"] == "completed"
        assert data["disbursement"]["fee"] == 500_000
        assert Challenge.from_dict(data) == challenge

    def test_copy_is_detached(self):
        challenge = Challenge(id="c1", owner=OWNER, amount=1, created_at=0, end_time=1)
        clone = challenge.copy()
        clone.state = ChallengeState.COMPLETED

        assert challenge.state == ChallengeState.ACTIVE


class TestVotingRecord:
    """Tests for the VotingRecord dataclass."""

    def test_defaults(self):
        voting = VotingRecord(challenge_id="c1", guarantors=(G1, G2))

        assert voting.required_votes == 2
        assert voting.ballots == {G1: Ballot.UNSET, G2: Ballot.UNSET}
        assert voting.no_threshold == 0

    def test_record_ballot_updates_tally(self):
        voting = VotingRecord(challenge_id="c1", guarantors=(G1, G2))

        assert voting.record_ballot(G1, False) == Ballot.NO
        assert voting.no_count == 1
        assert voting.majority_foreclosed()
        assert not voting.majority_reached()

    def test_copy_has_own_ballots(self):
        voting = VotingRecord(challenge_id="c1", guarantors=(G1,))
        clone = voting.copy()
        clone.record_ballot(G1, True)

        assert voting.ballot_of(G1) == Ballot.UNSET
        assert not voting.has_voted(G1)

    def test_from_dict(self):
        voting = VotingRecord.from_dict(
            {
                "challenge_id": "c1",
                "guarantors": [G1, G2],
                "required_votes": 2,
                "yes_votes": 1,
                "no_votes": 0,
                "ballots": {G1: "yes", G2: "unset"},
            }
        )

        assert voting.ballot_of(G1) == Ballot.YES
        assert voting.recount() == (1, 0)
        assert voting.to_dict()["ballots"] == {G1: "yes", G2: "unset"}


class TestDisbursement:
    def test_total_includes_fee(self):
        assert Disbursement(recipient=OWNER, amount=95, fee=5).total == 100


class TestExceptions:
    """Tests for the escrow error hierarchy."""

    def test_not_found(self):
        error = ChallengeNotFoundError("c9")

        assert isinstance(error, EscrowError)
        assert error.challenge_id == "c9"
        assert error.to_dict()["code"] == "NOT_FOUND"
        assert NotFound is ChallengeNotFoundError

    def test_invalid_state_details(self):
        error = InvalidStateError("c1", [ChallengeState.ACTIVE], ChallengeState.COMPLETED)

        assert error.details == {"challenge_id": "c1", "expected": ["active"], "actual": "completed"}

    def test_not_guarantor_is_authorization_error(self):
        assert issubclass(NotGuarantorError, AuthorizationError)

    def test_temporal_error_carries_boundary(self):
        error = VotingPeriodEndedError("closed", now=10, boundary=5, details={"challenge_id": "c1"})

        assert error.now == 10
        assert error.boundary == 5
        assert error.to_dict()["details"] == {"now": 10, "boundary": 5, "challenge_id": "c1"}
