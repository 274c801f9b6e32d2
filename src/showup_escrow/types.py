"""Type definitions and enums for the challenge escrow ledger."""

from enum import StrEnum


class ChallengeState(StrEnum):
    """Lifecycle state of a challenge."""

    ACTIVE = "active"  # Deposit locked, challenge running
    COMPLETED = "completed"  # Funds released to owner (terminal)
    FAILED_PENDING_VOTE = "failed_pending_vote"  # Owner reported failure, guarantors voting
    REMEDIATION_ACTIVE = "remediation_active"  # Path of Redemption granted
    FAILED_FINAL = "failed_final"  # Funds forfeited to treasury (terminal)

    @property
    def is_terminal(self) -> bool:
        return self in (ChallengeState.COMPLETED, ChallengeState.FAILED_FINAL)


class Ballot(StrEnum):
    """A guarantor's ballot on Path of Redemption."""

    UNSET = "unset"
    YES = "yes"  # Grant a second chance
    NO = "no"  # Forfeit


class LedgerEventType(StrEnum):
    """Events emitted by the ledger after a committed operation."""

    CHALLENGE_CREATED = "challenge_created"
    STATE_CHANGED = "state_changed"
    VOTE_CAST = "vote_cast"
    REMEDIATION_STARTED = "remediation_started"
    FUNDS_RELEASED = "funds_released"
    FUNDS_FORFEITED = "funds_forfeited"
    FEE_COLLECTED = "fee_collected"
    FEE_RETAINED = "fee_retained"  # Fee transfer failed; held in custody
    CONFIG_CHANGED = "config_changed"


# Permitted next states for each state
ALLOWED_TRANSITIONS: dict[ChallengeState, frozenset[ChallengeState]] = {
    ChallengeState.ACTIVE: frozenset({ChallengeState.FAILED_PENDING_VOTE, ChallengeState.COMPLETED}),
    ChallengeState.FAILED_PENDING_VOTE: frozenset({ChallengeState.REMEDIATION_ACTIVE, ChallengeState.FAILED_FINAL}),
    ChallengeState.REMEDIATION_ACTIVE: frozenset({ChallengeState.COMPLETED, ChallengeState.FAILED_FINAL}),
    ChallengeState.COMPLETED: frozenset(),
    ChallengeState.FAILED_FINAL: frozenset(),
}
