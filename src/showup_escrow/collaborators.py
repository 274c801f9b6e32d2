"""External collaborators consumed by the escrow ledger.

The ledger never moves value or reads time on its own; it goes through
a token-transfer service and a clock. In-memory implementations are
provided for tests, simulations, and single-process deployments.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenTransfer(Protocol):
    """Moves value into and out of the ledger's custody.

    Both methods return True on success. Returning False or raising is
    treated as a failed transfer by the ledger.
    """

    def transfer_in(self, source: str, amount: int) -> bool:
        """Pull ``amount`` from ``source`` into custody."""
        ...

    def transfer_out(self, recipient: str, amount: int) -> bool:
        """Push ``amount`` from custody to ``recipient``."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Monotonically non-decreasing source of "now" in seconds."""

    def now(self) -> int: ...


class SystemClock:
    """Wall clock in integer seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Settable clock for tests and replays.

    Refuses to move backwards so deadline comparisons stay monotonic.
    """

    def __init__(self, start: int = 0) -> None:
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"Clock cannot move backwards ({timestamp} < {self._now})")
        self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Cannot advance clock by a negative amount")
        self._now += int(seconds)
        return self._now


class InMemoryTokenVault:
    """Per-identity balances with a single custody account.

    Implements TokenTransfer. ``transfer_in`` fails when the source
    lacks funds; ``transfer_out`` fails when custody lacks funds or the
    recipient is blocked (used to simulate a reverting token).
    """

    def __init__(self, balances: dict[str, int] | None = None) -> None:
        self._balances: dict[str, int] = dict(balances or {})
        self._custody = 0
        self._blocked: set[str] = set()
        self._lock = threading.Lock()

    @property
    def custody_balance(self) -> int:
        return self._custody

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def mint(self, identity: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        with self._lock:
            self._balances[identity] = self._balances.get(identity, 0) + amount

    def block(self, identity: str) -> None:
        """Make every transfer to or from ``identity`` fail."""
        self._blocked.add(identity)

    def unblock(self, identity: str) -> None:
        self._blocked.discard(identity)

    def transfer_in(self, source: str, amount: int) -> bool:
        with self._lock:
            if source in self._blocked or amount < 0:
                return False
            balance = self._balances.get(source, 0)
            if balance < amount:
                logger.debug(f"transfer_in rejected: {source} has {balance}, needs {amount}")
                return False
            self._balances[source] = balance - amount
            self._custody += amount
            return True

    def transfer_out(self, recipient: str, amount: int) -> bool:
        with self._lock:
            if recipient in self._blocked or amount < 0:
                return False
            if self._custody < amount:
                logger.debug(f"transfer_out rejected: custody has {self._custody}, needs {amount}")
                return False
            self._custody -= amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            return True
