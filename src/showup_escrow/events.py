"""Ledger events and the off-chain mirror interface.

Every committed operation appends events to the ledger's log and
forwards them to registered mirrors. Mirrors duplicate ledger state
for query convenience only; they are never authoritative and a
failing mirror never affects the ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .types import ChallengeState, LedgerEventType

logger = logging.getLogger(__name__)


# Status vocabulary used by the off-chain challenges table
MIRROR_STATUS: dict[ChallengeState, str] = {
    ChallengeState.ACTIVE: "created",
    ChallengeState.FAILED_PENDING_VOTE: "voting",
    ChallengeState.REMEDIATION_ACTIVE: "redeemed",
    ChallengeState.COMPLETED: "completed",
    ChallengeState.FAILED_FINAL: "failed",
}


@dataclass(frozen=True)
class LedgerEvent:
    """A single fact emitted by the ledger."""

    sequence: int
    event_type: LedgerEventType
    challenge_id: str | None
    timestamp: int
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "challenge_id": self.challenge_id,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }


@runtime_checkable
class LedgerMirror(Protocol):
    """Receives committed ledger events, in order."""

    def publish(self, event: LedgerEvent) -> None: ...


@dataclass
class MirrorRow:
    """Denormalized view of one challenge, as kept by the off-chain store."""

    challenge_id: str
    owner: str
    amount: int
    guarantors: list[str]
    metadata_ref: str
    status: str = "created"
    ends_at: int = 0
    yes_votes: int = 0
    no_votes: int = 0
    updated_at: int = 0


class InMemoryMirror:
    """Projects ledger events onto per-challenge rows."""

    def __init__(self) -> None:
        self.rows: dict[str, MirrorRow] = {}
        self.events: list[LedgerEvent] = []

    def publish(self, event: LedgerEvent) -> None:
        self.events.append(event)
        if event.challenge_id is None:
            return

        if event.event_type == LedgerEventType.CHALLENGE_CREATED:
            self.rows[event.challenge_id] = MirrorRow(
                challenge_id=event.challenge_id,
                owner=event.data["owner"],
                amount=event.data["amount"],
                guarantors=list(event.data["guarantors"]),
                metadata_ref=event.data.get("metadata_ref", ""),
                ends_at=event.data["end_time"],
                updated_at=event.timestamp,
            )
            return

        row = self.rows.get(event.challenge_id)
        if row is None:
            logger.warning(f"Mirror received {event.event_type} for unknown challenge {event.challenge_id}")
            return

        if event.event_type == LedgerEventType.STATE_CHANGED:
            row.status = MIRROR_STATUS[ChallengeState(event.data["new_state"])]
        elif event.event_type == LedgerEventType.VOTE_CAST:
            row.yes_votes = event.data["yes_votes"]
            row.no_votes = event.data["no_votes"]
        row.updated_at = event.timestamp

    def status_of(self, challenge_id: str) -> str | None:
        row = self.rows.get(challenge_id)
        return row.status if row else None
