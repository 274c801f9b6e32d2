"""Deadline sweep for challenges nobody has finalized.

The ledger never advances on its own. A sweep simply calls the
permissionless finalize operations for every challenge whose voting or
remediation deadline has passed. Running it is optional; the ledger is
correct without it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .exceptions import EscrowError
from .ledger import EscrowLedger
from .types import ChallengeState

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep pass."""

    finalized_votes: list[str] = field(default_factory=list)
    finalized_remediations: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.finalized_votes) + len(self.finalized_remediations)


def sweep_expired(ledger: EscrowLedger) -> SweepResult:
    """Finalize every challenge whose voting or remediation window has closed.

    Errors on one challenge are recorded and do not stop the sweep;
    the failed challenge stays untouched and is picked up next pass.
    """
    result = SweepResult()
    now = ledger.clock.now()

    for challenge in ledger.list_challenges(state=ChallengeState.FAILED_PENDING_VOTE):
        if now <= challenge.voting_deadline:
            continue
        try:
            ledger.finalize_voting(challenge.id)
            result.finalized_votes.append(challenge.id)
        except EscrowError as e:
            logger.warning(f"Sweep could not finalize voting for {challenge.id}: {e}")
            result.errors[challenge.id] = e.code

    for challenge in ledger.list_challenges(state=ChallengeState.REMEDIATION_ACTIVE):
        if now <= challenge.remediation_deadline:
            continue
        try:
            ledger.finalize_remediation(challenge.id)
            result.finalized_remediations.append(challenge.id)
        except EscrowError as e:
            logger.warning(f"Sweep could not finalize remediation for {challenge.id}: {e}")
            result.errors[challenge.id] = e.code

    if result.total:
        logger.info(
            f"Sweep finalized {len(result.finalized_votes)} votes and "
            f"{len(result.finalized_remediations)} remediations"
        )
    return result
