"""Showup challenge escrow.

Locks a user's deposit against a personal commitment and releases or
forfeits it through a state machine driven by the owner, their
guarantors, and deadlines.

Key concepts:
- Challenge: a deposit plus its time bounds and lifecycle state
- Guarantor: a peer who may confirm success or vote on redemption
- Path of Redemption: guarantor vote granting a failed owner a second chance
- Treasury: destination of forfeited deposits

The read-only HTTP surface lives in ``showup_escrow.server``.
"""

# Constants
from .constants import (
    BPS_DENOMINATOR,
    MAX_DEPOSIT,
    MAX_FEE_BPS,
    MAX_GUARANTORS,
    MIN_DEPOSIT,
    MIN_GUARANTORS,
    REMEDIATION_PERIOD,
    USDC_DECIMALS,
    VOTING_PERIOD,
)

# Collaborators
from .collaborators import (
    Clock,
    InMemoryTokenVault,
    ManualClock,
    SystemClock,
    TokenTransfer,
)

# Configuration
from .config import (
    EscrowConfigProtocol,
    EscrowSettings,
    FeeConfig,
    clear_config_cache,
    clear_escrow_config,
    get_config,
    get_escrow_config,
    set_escrow_config,
)

# Events and mirrors
from .events import InMemoryMirror, LedgerEvent, LedgerMirror

# Exceptions
from .exceptions import (
    AlreadyVotedError,
    AuthorizationError,
    ChallengeNotEndedError,
    ChallengeNotFoundError,
    CustodyInvariantError,
    DuplicateChallengeError,
    EscrowError,
    InvalidAmountError,
    InvalidDurationError,
    InvalidFeeError,
    InvalidGuarantorsError,
    InvalidStateError,
    MissingRecipientError,
    NotAuthorizedError,
    NotGuarantorError,
    RemediationPeriodActiveError,
    ResourceError,
    TemporalError,
    TransferFailedError,
    ValidationError,
    VotingPeriodActiveError,
    VotingPeriodEndedError,
)

# Identifiers
from .ids import format_usdc, generate_challenge_id, parse_usdc

# Ledger
from .ledger import CustodyReport, EscrowLedger

# Data classes
from .models import Challenge, Disbursement, VotingRecord, compute_required_votes

# Failure reporting
from .reporters import DelegatedReporter, FailureReporterPolicy, OwnerOnlyReporter

# Storage
from .storage import ChallengeStore

# Sweep
from .sweep import SweepResult, sweep_expired

# Types (enums)
from .types import ALLOWED_TRANSITIONS, Ballot, ChallengeState, LedgerEventType

__all__ = [
    # Constants
    "VOTING_PERIOD",
    "REMEDIATION_PERIOD",
    "MIN_DEPOSIT",
    "MAX_DEPOSIT",
    "MIN_GUARANTORS",
    "MAX_GUARANTORS",
    "MAX_FEE_BPS",
    "BPS_DENOMINATOR",
    "USDC_DECIMALS",
    # Collaborators
    "TokenTransfer",
    "Clock",
    "SystemClock",
    "ManualClock",
    "InMemoryTokenVault",
    # Configuration
    "EscrowConfigProtocol",
    "EscrowSettings",
    "FeeConfig",
    "set_escrow_config",
    "get_escrow_config",
    "clear_escrow_config",
    "get_config",
    "clear_config_cache",
    # Events
    "LedgerEvent",
    "LedgerMirror",
    "InMemoryMirror",
    # Exceptions
    "EscrowError",
    "ValidationError",
    "InvalidAmountError",
    "InvalidGuarantorsError",
    "InvalidDurationError",
    "DuplicateChallengeError",
    "InvalidFeeError",
    "MissingRecipientError",
    "ChallengeNotFoundError",
    "InvalidStateError",
    "AlreadyVotedError",
    "AuthorizationError",
    "NotAuthorizedError",
    "NotGuarantorError",
    "TemporalError",
    "ChallengeNotEndedError",
    "VotingPeriodEndedError",
    "VotingPeriodActiveError",
    "RemediationPeriodActiveError",
    "ResourceError",
    "TransferFailedError",
    "CustodyInvariantError",
    # Identifiers
    "generate_challenge_id",
    "parse_usdc",
    "format_usdc",
    # Ledger
    "EscrowLedger",
    "CustodyReport",
    # Data classes
    "Challenge",
    "VotingRecord",
    "Disbursement",
    "compute_required_votes",
    # Failure reporting
    "FailureReporterPolicy",
    "OwnerOnlyReporter",
    "DelegatedReporter",
    # Storage
    "ChallengeStore",
    # Sweep
    "sweep_expired",
    "SweepResult",
    # Types
    "ChallengeState",
    "Ballot",
    "LedgerEventType",
    "ALLOWED_TRANSITIONS",
]
