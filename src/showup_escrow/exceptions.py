"""Escrow exception hierarchy.

Every error raised by the ledger aborts the whole operation with no
ledger mutation and no partial disbursement. Callers get a specific,
named condition so they can tell "already voted" apart from "voting has
closed" or "not a guarantor".
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class EscrowError(Exception):
    """Base exception for all escrow errors."""

    code = "ESCROW_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(EscrowError):
    """Malformed input, caught before any state mutation."""

    code = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Deposit amount is outside [MIN_DEPOSIT, MAX_DEPOSIT]."""

    code = "INVALID_AMOUNT"


class InvalidGuarantorsError(ValidationError):
    """Guarantor set has a bad size, duplicates, or includes the owner."""

    code = "INVALID_GUARANTORS"


class InvalidDurationError(ValidationError):
    """Challenge duration is not a positive number of seconds."""

    code = "INVALID_DURATION"


class DuplicateChallengeError(ValidationError):
    """A challenge with this id already exists."""

    code = "DUPLICATE_CHALLENGE"


class InvalidFeeError(ValidationError):
    """Platform fee is above the cap."""

    code = "INVALID_FEE"


class MissingRecipientError(ValidationError):
    """Treasury or fee recipient is required but not configured."""

    code = "MISSING_RECIPIENT"


# =============================================================================
# LOOKUP / STATE ERRORS
# =============================================================================


class ChallengeNotFoundError(EscrowError):
    """No challenge exists with the given id."""

    code = "NOT_FOUND"

    def __init__(self, challenge_id: str):
        super().__init__(f"Challenge {challenge_id} not found", {"challenge_id": challenge_id})
        self.challenge_id = challenge_id


class InvalidStateError(EscrowError):
    """Challenge is not in a state that permits the operation."""

    code = "INVALID_STATE"

    def __init__(self, challenge_id: str, expected: Iterable[Any], actual: Any):
        self.challenge_id = challenge_id
        self.expected = tuple(expected)
        self.actual = actual
        expected_text = " or ".join(str(s) for s in self.expected) or "none"
        super().__init__(
            f"Challenge {challenge_id} is {actual}, expected {expected_text}",
            {
                "challenge_id": challenge_id,
                "expected": [str(s) for s in self.expected],
                "actual": str(actual),
            },
        )


class AlreadyVotedError(EscrowError):
    """Guarantor's ballot is already set; revoting is not allowed."""

    code = "ALREADY_VOTED"


# =============================================================================
# AUTHORIZATION ERRORS
# =============================================================================


class AuthorizationError(EscrowError):
    """Caller lacks the role required for the requested transition."""

    code = "NOT_AUTHORIZED"


class NotAuthorizedError(AuthorizationError):
    """Caller is neither the owner (when allowed) nor a guarantor nor admin."""

    code = "NOT_AUTHORIZED"


class NotGuarantorError(AuthorizationError):
    """Caller is not one of the challenge's guarantors."""

    code = "NOT_GUARANTOR"


# =============================================================================
# TEMPORAL ERRORS
# =============================================================================


class TemporalError(EscrowError):
    """Operation attempted outside its valid time window."""

    code = "TEMPORAL_ERROR"

    def __init__(self, message: str, now: int, boundary: int, details: dict[str, Any] | None = None):
        self.now = now
        self.boundary = boundary
        merged = {"now": now, "boundary": boundary}
        merged.update(details or {})
        super().__init__(message, merged)


class ChallengeNotEndedError(TemporalError):
    """Challenge end time has not been reached."""

    code = "CHALLENGE_NOT_ENDED"


class VotingPeriodEndedError(TemporalError):
    """Voting deadline has passed."""

    code = "VOTING_PERIOD_ENDED"


class VotingPeriodActiveError(TemporalError):
    """Voting deadline has not passed yet."""

    code = "VOTING_PERIOD_ACTIVE"


class RemediationPeriodActiveError(TemporalError):
    """Remediation deadline has not passed yet."""

    code = "REMEDIATION_PERIOD_ACTIVE"


# =============================================================================
# RESOURCE ERRORS
# =============================================================================


class ResourceError(EscrowError):
    """Underlying funds movement failed or would break custody."""

    code = "RESOURCE_ERROR"


class TransferFailedError(ResourceError):
    """Token transfer collaborator reported a failure."""

    code = "TRANSFER_FAILED"


class CustodyInvariantError(ResourceError):
    """Custody balance does not cover the requested disbursement."""

    code = "CUSTODY_INVARIANT"


# Short aliases matching the error vocabulary used by API clients
InvalidAmount = InvalidAmountError
InvalidGuarantors = InvalidGuarantorsError
DuplicateChallenge = DuplicateChallengeError
TransferFailed = TransferFailedError
NotFound = ChallengeNotFoundError
InvalidState = InvalidStateError
NotAuthorized = NotAuthorizedError
NotGuarantor = NotGuarantorError
AlreadyVoted = AlreadyVotedError
ChallengeNotEnded = ChallengeNotEndedError
VotingPeriodEnded = VotingPeriodEndedError
VotingPeriodActive = VotingPeriodActiveError
RemediationPeriodActive = RemediationPeriodActiveError
