"""Challenge and voting records held by the escrow ledger."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .types import Ballot, ChallengeState


def compute_required_votes(guarantor_count: int) -> int:
    """Strict majority of the original guarantor count."""
    return guarantor_count // 2 + 1


@dataclass(frozen=True)
class Disbursement:
    """The single terminal movement of a challenge's deposit."""

    recipient: str  # Owner on completion, treasury on forfeiture
    amount: int  # Net amount sent to recipient
    fee: int = 0
    fee_recipient: str | None = None
    forfeited: bool = False
    executed_at: int = 0

    @property
    def total(self) -> int:
        return self.amount + self.fee

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "recipient": self.recipient,
            "amount": self.amount,
            "fee": self.fee,
            "fee_recipient": self.fee_recipient,
            "forfeited": self.forfeited,
            "executed_at": self.executed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Disbursement:
        """Create from dictionary."""
        return cls(
            recipient=data["recipient"],
            amount=int(data["amount"]),
            fee=int(data.get("fee", 0)),
            fee_recipient=data.get("fee_recipient"),
            forfeited=bool(data.get("forfeited", False)),
            executed_at=int(data.get("executed_at", 0)),
        )


@dataclass
class Challenge:
    """A deposit locked against a personal commitment.

    The owner deposits ``amount`` and gets it back (minus the platform
    fee) only through a successful completion. Any other terminal
    outcome sends the full amount to the treasury.
    """

    id: str
    owner: str
    amount: int

    # Timing (seconds)
    created_at: int
    end_time: int
    voting_deadline: int = 0  # Set on entering FAILED_PENDING_VOTE
    remediation_deadline: int = 0  # Set on entering REMEDIATION_ACTIVE

    state: ChallengeState = ChallengeState.ACTIVE
    metadata_ref: str = ""

    # Terminal bookkeeping
    disbursement: Disbursement | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def copy(self) -> Challenge:
        """Detached copy; mutating it never touches the stored record."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "owner": self.owner,
            "amount": self.amount,
            "state": self.state.value,
            "created_at": self.created_at,
            "end_time": self.end_time,
            "voting_deadline": self.voting_deadline,
            "remediation_deadline": self.remediation_deadline,
            "metadata_ref": self.metadata_ref,
            "disbursement": self.disbursement.to_dict() if self.disbursement else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Challenge:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            owner=data["owner"],
            amount=int(data["amount"]),
            state=ChallengeState(data.get("state", "active")),
            created_at=int(data["created_at"]),
            end_time=int(data["end_time"]),
            voting_deadline=int(data.get("voting_deadline", 0)),
            remediation_deadline=int(data.get("remediation_deadline", 0)),
            metadata_ref=data.get("metadata_ref", ""),
            disbursement=(Disbursement.from_dict(data["disbursement"]) if data.get("disbursement") else None),
        )


@dataclass
class VotingRecord:
    """Guarantor ballots for one challenge's Path of Redemption vote.

    Tallies are maintained incrementally by ``record_ballot``;
    ``recount`` recomputes them from the ballots for verification.
    """

    challenge_id: str
    guarantors: tuple[str, ...]
    required_votes: int = 0
    ballots: dict[str, Ballot] = field(default_factory=dict)
    yes_count: int = 0
    no_count: int = 0

    def __post_init__(self) -> None:
        self.guarantors = tuple(self.guarantors)
        if not self.required_votes:
            self.required_votes = compute_required_votes(len(self.guarantors))
        for guarantor in self.guarantors:
            self.ballots.setdefault(guarantor, Ballot.UNSET)

    @property
    def guarantor_count(self) -> int:
        return len(self.guarantors)

    @property
    def votes_cast(self) -> int:
        return self.yes_count + self.no_count

    @property
    def no_threshold(self) -> int:
        """No-count above which yes can no longer reach a majority."""
        return self.guarantor_count - self.required_votes

    def is_guarantor(self, identity: str) -> bool:
        return identity in self.ballots

    def ballot_of(self, identity: str) -> Ballot:
        return self.ballots.get(identity, Ballot.UNSET)

    def has_voted(self, identity: str) -> bool:
        return self.ballot_of(identity) != Ballot.UNSET

    def record_ballot(self, identity: str, approve: bool) -> Ballot:
        """Set an unset ballot and bump the matching tally.

        The caller is responsible for guarantor and revote checks.
        """
        ballot = Ballot.YES if approve else Ballot.NO
        self.ballots[identity] = ballot
        if ballot == Ballot.YES:
            self.yes_count += 1
        else:
            self.no_count += 1
        return ballot

    def majority_reached(self) -> bool:
        return self.yes_count >= self.required_votes

    def majority_foreclosed(self) -> bool:
        return self.no_count > self.no_threshold

    def recount(self) -> tuple[int, int]:
        """Independent (yes, no) recount from the ballots."""
        yes = sum(1 for b in self.ballots.values() if b == Ballot.YES)
        no = sum(1 for b in self.ballots.values() if b == Ballot.NO)
        return yes, no

    def copy(self) -> VotingRecord:
        """Detached copy with its own ballot map."""
        return replace(self, ballots=dict(self.ballots))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "challenge_id": self.challenge_id,
            "guarantors": list(self.guarantors),
            "required_votes": self.required_votes,
            "yes_votes": self.yes_count,
            "no_votes": self.no_count,
            "ballots": {g: b.value for g, b in self.ballots.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VotingRecord:
        """Create from dictionary."""
        return cls(
            challenge_id=data["challenge_id"],
            guarantors=tuple(data["guarantors"]),
            required_votes=int(data.get("required_votes", 0)),
            ballots={g: Ballot(b) for g, b in data.get("ballots", {}).items()},
            yes_count=int(data.get("yes_votes", 0)),
            no_count=int(data.get("no_votes", 0)),
        )
