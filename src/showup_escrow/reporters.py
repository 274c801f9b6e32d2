"""Authorization policies for reporting a challenge as failed.

Only the owner may self-report today. The policy is a separate object
so an oracle role can be added without touching the state machine.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .models import Challenge


@runtime_checkable
class FailureReporterPolicy(Protocol):
    """Decides whether ``caller`` may report ``challenge`` as failed."""

    def may_report(self, challenge: Challenge, caller: str) -> bool: ...


class OwnerOnlyReporter:
    """The challenge owner self-reports failure."""

    def may_report(self, challenge: Challenge, caller: str) -> bool:
        return caller == challenge.owner


class DelegatedReporter:
    """Owner plus a fixed set of trusted reporter identities."""

    def __init__(self, reporters: Iterable[str]) -> None:
        self.reporters = frozenset(reporters)

    def may_report(self, challenge: Challenge, caller: str) -> bool:
        return caller == challenge.owner or caller in self.reporters
