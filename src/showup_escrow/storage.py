"""In-memory storage for challenge and voting records.

Challenges and their voting records live in parallel tables keyed by
challenge id. Records are replaced whole on commit and never deleted.
Each challenge id has its own lock so operations on one challenge are
serialized while different challenges proceed independently.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .exceptions import ChallengeNotFoundError, DuplicateChallengeError
from .models import Challenge, VotingRecord
from .types import ChallengeState


class ChallengeStore:
    """Keyed store of challenges and voting records."""

    def __init__(self) -> None:
        self._challenges: dict[str, Challenge] = {}
        self._voting: dict[str, VotingRecord] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._store_lock = threading.RLock()
        self._reserved: set[str] = set()  # Ids whose creation is in flight

    def __contains__(self, challenge_id: object) -> bool:
        return challenge_id in self._challenges

    def __len__(self) -> int:
        return len(self._challenges)

    @contextmanager
    def creating(self, challenge_id: str) -> Iterator[None]:
        """Reserve a new id for the duration of its creation.

        The store lock is held only to check and reserve the id, so a
        slow deposit never blocks operations on other challenges. The
        reservation is dropped on exit whether or not ``insert`` ran.
        """
        with self._store_lock:
            if challenge_id in self._challenges or challenge_id in self._reserved:
                raise DuplicateChallengeError(
                    f"Challenge {challenge_id} already exists",
                    {"challenge_id": challenge_id},
                )
            self._reserved.add(challenge_id)
        try:
            yield
        finally:
            with self._store_lock:
                self._reserved.discard(challenge_id)

    @contextmanager
    def locked(self, challenge_id: str) -> Iterator[None]:
        """Serialize operations on a single challenge."""
        with self._store_lock:
            lock = self._locks.get(challenge_id)
            if lock is None:
                raise ChallengeNotFoundError(challenge_id)
        with lock:
            yield

    def insert(self, challenge: Challenge, voting: VotingRecord) -> None:
        """Insert both records. Call inside ``creating``, after the deposit."""
        with self._store_lock:
            self._challenges[challenge.id] = challenge
            self._voting[challenge.id] = voting
            self._locks[challenge.id] = threading.RLock()

    def commit(self, challenge: Challenge, voting: VotingRecord | None = None) -> None:
        """Replace the stored records. Call inside ``locked``."""
        self._challenges[challenge.id] = challenge
        if voting is not None:
            self._voting[challenge.id] = voting

    def get_challenge(self, challenge_id: str) -> Challenge:
        challenge = self._challenges.get(challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError(challenge_id)
        return challenge

    def get_voting(self, challenge_id: str) -> VotingRecord:
        voting = self._voting.get(challenge_id)
        if voting is None:
            raise ChallengeNotFoundError(challenge_id)
        return voting

    def list_challenges(
        self,
        owner: str | None = None,
        state: ChallengeState | None = None,
    ) -> list[Challenge]:
        with self._store_lock:
            challenges = list(self._challenges.values())
        return [
            c for c in challenges if (owner is None or c.owner == owner) and (state is None or c.state == state)
        ]

    def ids(self) -> list[str]:
        with self._store_lock:
            return list(self._challenges)
