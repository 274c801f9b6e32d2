"""Escrow Ledger & Voting Engine.

Holds challenge deposits and drives each challenge through its state
machine:

    ACTIVE --report_failure--> FAILED_PENDING_VOTE
    ACTIVE --complete_challenge--> COMPLETED
    FAILED_PENDING_VOTE --cast_vote / finalize_voting--> REMEDIATION_ACTIVE | FAILED_FINAL
    REMEDIATION_ACTIVE --complete_challenge--> COMPLETED
    REMEDIATION_ACTIVE --finalize_remediation--> FAILED_FINAL

Every operation works on detached copies of the stored records and
commits them only after the required transfers have succeeded, so a
failed call leaves no trace. Deadlines are never pushed by a timer;
they take effect when someone calls a finalize operation.

Funds leave custody exactly once per challenge: to the owner (minus
the platform fee) on completion, or in full to the treasury on
forfeiture.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from .collaborators import Clock, SystemClock, TokenTransfer
from .config import EscrowConfigProtocol, FeeConfig, get_escrow_config, validate_fee_bps
from .constants import (
    MAX_DEPOSIT,
    MAX_GUARANTORS,
    MIN_DEPOSIT,
    MIN_GUARANTORS,
    REMEDIATION_PERIOD,
    VOTING_PERIOD,
)
from .events import LedgerEvent, LedgerMirror
from .exceptions import (
    AlreadyVotedError,
    ChallengeNotEndedError,
    CustodyInvariantError,
    InvalidAmountError,
    InvalidDurationError,
    InvalidGuarantorsError,
    InvalidStateError,
    MissingRecipientError,
    NotAuthorizedError,
    NotGuarantorError,
    RemediationPeriodActiveError,
    TransferFailedError,
    VotingPeriodActiveError,
    VotingPeriodEndedError,
)
from .models import Challenge, Disbursement, VotingRecord, compute_required_votes
from .reporters import FailureReporterPolicy, OwnerOnlyReporter
from .storage import ChallengeStore
from .types import ALLOWED_TRANSITIONS, Ballot, ChallengeState, LedgerEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustodyReport:
    """Snapshot of the ledger's custody accounts."""

    total_received: int
    total_paid_out: int
    locked: int
    fees_paid: int
    forfeited: int
    unclaimed_forfeits: int
    retained_fees: int

    @property
    def custody_balance(self) -> int:
        return self.total_received - self.total_paid_out

    @property
    def balanced(self) -> bool:
        return self.custody_balance == self.locked + self.unclaimed_forfeits + self.retained_fees

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_received": self.total_received,
            "total_paid_out": self.total_paid_out,
            "custody_balance": self.custody_balance,
            "locked": self.locked,
            "fees_paid": self.fees_paid,
            "forfeited": self.forfeited,
            "unclaimed_forfeits": self.unclaimed_forfeits,
            "retained_fees": self.retained_fees,
            "balanced": self.balanced,
        }


def validate_guarantors(guarantors: Sequence[str], owner: str) -> tuple[str, ...]:
    """Check size, uniqueness and self-reference of a guarantor set."""
    if isinstance(guarantors, str):
        raise InvalidGuarantorsError(
            "Guarantors must be a sequence of identities, not a string",
            {"guarantors": guarantors},
        )
    count = len(guarantors)
    if count < MIN_GUARANTORS or count > MAX_GUARANTORS:
        raise InvalidGuarantorsError(
            f"Need between {MIN_GUARANTORS} and {MAX_GUARANTORS} guarantors, got {count}",
            {"count": count},
        )
    if owner in guarantors:
        raise InvalidGuarantorsError("Owner cannot be their own guarantor", {"owner": owner})
    if len(set(guarantors)) != count:
        duplicates = sorted({g for g in guarantors if guarantors.count(g) > 1})
        raise InvalidGuarantorsError(f"Duplicate guarantors: {', '.join(duplicates)}", {"duplicates": duplicates})
    return tuple(guarantors)


def validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {amount!r}", {"amount": repr(amount)})
    if amount < MIN_DEPOSIT or amount > MAX_DEPOSIT:
        raise InvalidAmountError(
            f"Amount {amount} outside [{MIN_DEPOSIT}, {MAX_DEPOSIT}]",
            {"amount": amount, "min": MIN_DEPOSIT, "max": MAX_DEPOSIT},
        )


class EscrowLedger:
    """Challenge escrow and Path of Redemption voting engine."""

    def __init__(
        self,
        token: TokenTransfer,
        clock: Clock | None = None,
        *,
        admin: str | None = None,
        fee_config: FeeConfig | None = None,
        failure_reporter: FailureReporterPolicy | None = None,
        mirrors: Iterable[LedgerMirror] | None = None,
        store: ChallengeStore | None = None,
    ) -> None:
        self.token = token
        self.clock = clock or SystemClock()
        self.admin = admin
        self.fee_config = fee_config or FeeConfig()
        self.failure_reporter = failure_reporter or OwnerOnlyReporter()
        self.mirrors: list[LedgerMirror] = list(mirrors or [])
        self.store = store or ChallengeStore()

        # Custody accounts, shared by all challenges
        self._accounts_lock = threading.Lock()
        self._total_received = 0
        self._total_paid_out = 0
        self._locked = 0
        self._fees_paid = 0
        self._forfeited = 0
        self._unclaimed_forfeits = 0
        self._retained_fees = 0

        self._events_lock = threading.Lock()
        self.events: list[LedgerEvent] = []

    @classmethod
    def from_settings(
        cls,
        token: TokenTransfer,
        clock: Clock | None = None,
        settings: EscrowConfigProtocol | None = None,
        **kwargs: Any,
    ) -> EscrowLedger:
        """Build a ledger from an escrow config object.

        Without ``settings`` the globally injected config is used, or
        ``SHOWUP_`` environment settings when none was injected.
        """
        settings = settings or get_escrow_config()
        fee_config = FeeConfig(
            platform_fee_bps=settings.platform_fee_bps,
            fee_recipient=settings.fee_recipient,
            treasury=settings.treasury,
        )
        return cls(token, clock, admin=settings.admin_identity, fee_config=fee_config, **kwargs)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def create_challenge(
        self,
        challenge_id: str,
        caller: str,
        guarantors: Sequence[str],
        amount: int,
        duration: int,
        metadata_ref: str = "",
    ) -> Challenge:
        """Lock ``amount`` from ``caller`` and open a new challenge.

        Args:
            challenge_id: Unique id for the new challenge
            caller: Depositor; becomes the challenge owner
            guarantors: 1..10 distinct identities, excluding the owner
            amount: Deposit in smallest asset units
            duration: Seconds until the challenge end time
            metadata_ref: Opaque reference to the challenge description

        Returns:
            Copy of the committed challenge

        Raises:
            InvalidAmountError, InvalidGuarantorsError, InvalidDurationError,
            DuplicateChallengeError, TransferFailedError
        """
        validate_amount(amount)
        members = validate_guarantors(guarantors, caller)
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise InvalidDurationError(f"Duration must be a positive integer, got {duration!r}")

        with self.store.creating(challenge_id):
            now = self.clock.now()
            challenge = Challenge(
                id=challenge_id,
                owner=caller,
                amount=amount,
                created_at=now,
                end_time=now + duration,
                metadata_ref=metadata_ref,
            )
            voting = VotingRecord(
                challenge_id=challenge_id,
                guarantors=members,
                required_votes=compute_required_votes(len(members)),
            )

            # Book and announce before the record becomes visible to other callers
            self._pull(caller, amount, challenge_id)
            with self._accounts_lock:
                self._total_received += amount
                self._locked += amount
            self._emit(
                [
                    (
                        LedgerEventType.CHALLENGE_CREATED,
                        challenge_id,
                        {
                            "owner": caller,
                            "amount": amount,
                            "guarantors": list(members),
                            "required_votes": voting.required_votes,
                            "end_time": challenge.end_time,
                            "metadata_ref": metadata_ref,
                        },
                    )
                ],
                now,
            )
            self.store.insert(challenge, voting)

        logger.info(
            f"Challenge {challenge_id} created by {caller}: amount={amount}, "
            f"guarantors={len(members)}, required_votes={voting.required_votes}, end_time={challenge.end_time}"
        )
        return challenge.copy()

    def report_failure(self, challenge_id: str, caller: str) -> Challenge:
        """Owner reports failure after the end time; opens guarantor voting."""
        with self.store.locked(challenge_id):
            now = self.clock.now()
            challenge = self.store.get_challenge(challenge_id).copy()
            self._require_state(challenge, ChallengeState.ACTIVE)
            if not self.failure_reporter.may_report(challenge, caller):
                raise NotAuthorizedError(
                    f"{caller} may not report failure for challenge {challenge_id}",
                    {"challenge_id": challenge_id, "caller": caller},
                )
            if now < challenge.end_time:
                raise ChallengeNotEndedError(
                    f"Challenge {challenge_id} ends at {challenge.end_time}",
                    now,
                    challenge.end_time,
                    {"challenge_id": challenge_id},
                )

            pending: list[tuple[LedgerEventType, str, dict[str, Any]]] = []
            self._transition(challenge, ChallengeState.FAILED_PENDING_VOTE, pending)
            challenge.voting_deadline = now + VOTING_PERIOD
            self._commit(challenge, None, None, pending, now)

        logger.info(f"Challenge {challenge_id} reported failed; voting open until {challenge.voting_deadline}")
        return challenge.copy()

    def cast_vote(self, challenge_id: str, caller: str, approve: bool) -> Challenge:
        """Record a guarantor's Path of Redemption ballot.

        Resolves the vote immediately once the yes side reaches the
        strict majority of the original guarantor count, or once enough
        no ballots make that majority unreachable.
        """
        with self.store.locked(challenge_id):
            now = self.clock.now()
            challenge = self.store.get_challenge(challenge_id).copy()
            self._require_state(challenge, ChallengeState.FAILED_PENDING_VOTE)
            if now > challenge.voting_deadline:
                raise VotingPeriodEndedError(
                    f"Voting for challenge {challenge_id} closed at {challenge.voting_deadline}",
                    now,
                    challenge.voting_deadline,
                    {"challenge_id": challenge_id},
                )
            voting = self.store.get_voting(challenge_id).copy()
            if not voting.is_guarantor(caller):
                raise NotGuarantorError(
                    f"{caller} is not a guarantor of challenge {challenge_id}",
                    {"challenge_id": challenge_id, "caller": caller},
                )
            if voting.has_voted(caller):
                raise AlreadyVotedError(
                    f"{caller} already voted on challenge {challenge_id}",
                    {"challenge_id": challenge_id, "caller": caller, "ballot": voting.ballot_of(caller).value},
                )

            ballot = voting.record_ballot(caller, approve)
            pending: list[tuple[LedgerEventType, str, dict[str, Any]]] = [
                (
                    LedgerEventType.VOTE_CAST,
                    challenge_id,
                    {
                        "guarantor": caller,
                        "approve": approve,
                        "yes_votes": voting.yes_count,
                        "no_votes": voting.no_count,
                    },
                )
            ]
            logger.debug(
                f"Vote on {challenge_id} by {caller}: {ballot} (yes={voting.yes_count}, no={voting.no_count}, "
                f"required={voting.required_votes})"
            )

            disbursement = None
            if voting.majority_reached():
                self._enter_remediation(challenge, now, pending)
            elif voting.majority_foreclosed():
                disbursement = self._forfeit(challenge, now, pending)

            self._commit(challenge, voting, disbursement, pending, now)

        return challenge.copy()

    def finalize_voting(self, challenge_id: str) -> Challenge:
        """Resolve a vote after its deadline. Callable by anyone."""
        with self.store.locked(challenge_id):
            now = self.clock.now()
            challenge = self.store.get_challenge(challenge_id).copy()
            self._require_state(challenge, ChallengeState.FAILED_PENDING_VOTE)
            if now <= challenge.voting_deadline:
                raise VotingPeriodActiveError(
                    f"Voting for challenge {challenge_id} open until {challenge.voting_deadline}",
                    now,
                    challenge.voting_deadline,
                    {"challenge_id": challenge_id},
                )
            voting = self.store.get_voting(challenge_id)

            pending: list[tuple[LedgerEventType, str, dict[str, Any]]] = []
            disbursement = None
            if voting.majority_reached():
                self._enter_remediation(challenge, now, pending)
            else:
                disbursement = self._forfeit(challenge, now, pending)

            self._commit(challenge, None, disbursement, pending, now)

        logger.info(
            f"Voting finalized for {challenge_id}: {challenge.state} "
            f"(yes={voting.yes_count}, no={voting.no_count}, required={voting.required_votes})"
        )
        return challenge.copy()

    def complete_challenge(self, challenge_id: str, caller: str) -> Challenge:
        """Confirm success and release the deposit to the owner.

        Any guarantor may confirm at any time while the challenge is
        ACTIVE or REMEDIATION_ACTIVE. The owner may self-complete only
        once the end time has passed.
        """
        with self.store.locked(challenge_id):
            now = self.clock.now()
            challenge = self.store.get_challenge(challenge_id).copy()
            self._require_state(challenge, ChallengeState.ACTIVE, ChallengeState.REMEDIATION_ACTIVE)
            voting = self.store.get_voting(challenge_id)
            owner_may_complete = caller == challenge.owner and now >= challenge.end_time
            if not (voting.is_guarantor(caller) or owner_may_complete):
                raise NotAuthorizedError(
                    f"{caller} may not complete challenge {challenge_id}",
                    {"challenge_id": challenge_id, "caller": caller},
                )

            pending: list[tuple[LedgerEventType, str, dict[str, Any]]] = []
            self._transition(challenge, ChallengeState.COMPLETED, pending)
            fee_config = self.fee_config
            fee = fee_config.compute_fee(challenge.amount)
            disbursement = Disbursement(
                recipient=challenge.owner,
                amount=challenge.amount - fee,
                fee=fee,
                fee_recipient=fee_config.fee_recipient if fee else None,
                executed_at=now,
            )
            challenge.disbursement = self._release(challenge, disbursement, pending)

            self._commit(challenge, None, challenge.disbursement, pending, now)

        logger.info(
            f"Challenge {challenge_id} completed by {caller}: payout={disbursement.amount} to {challenge.owner}, "
            f"fee={disbursement.fee}"
        )
        return challenge.copy()

    def finalize_remediation(self, challenge_id: str) -> Challenge:
        """Forfeit a challenge whose remediation window ran out. Callable by anyone."""
        with self.store.locked(challenge_id):
            now = self.clock.now()
            challenge = self.store.get_challenge(challenge_id).copy()
            self._require_state(challenge, ChallengeState.REMEDIATION_ACTIVE)
            if now <= challenge.remediation_deadline:
                raise RemediationPeriodActiveError(
                    f"Remediation for challenge {challenge_id} open until {challenge.remediation_deadline}",
                    now,
                    challenge.remediation_deadline,
                    {"challenge_id": challenge_id},
                )

            pending: list[tuple[LedgerEventType, str, dict[str, Any]]] = []
            disbursement = self._forfeit(challenge, now, pending)
            self._commit(challenge, None, disbursement, pending, now)

        logger.info(f"Remediation expired for {challenge_id}; deposit forfeited")
        return challenge.copy()

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def set_platform_fee(self, caller: str, fee_bps: int) -> None:
        """Set the completion fee in basis points (at most 10%)."""
        self._require_admin(caller)
        validate_fee_bps(fee_bps)
        self._update_fee_config(platform_fee_bps=fee_bps)

    def set_fee_recipient(self, caller: str, recipient: str | None) -> None:
        self._require_admin(caller)
        self._update_fee_config(fee_recipient=recipient or None)

    def set_treasury(self, caller: str, treasury: str | None) -> None:
        self._require_admin(caller)
        self._update_fee_config(treasury=treasury or None)

    def sweep_unclaimed_forfeits(self, caller: str) -> int:
        """Send forfeits held for lack of a treasury to the current treasury."""
        self._require_admin(caller)
        treasury = self.fee_config.treasury
        if not treasury:
            raise MissingRecipientError("No treasury configured", {"caller": caller})
        # Claim under the lock, transfer outside it, give back on failure
        with self._accounts_lock:
            amount = self._unclaimed_forfeits
            if amount == 0:
                return 0
            self._unclaimed_forfeits -= amount
            self._total_paid_out += amount
        try:
            self._push(treasury, amount, None)
        except TransferFailedError:
            with self._accounts_lock:
                self._unclaimed_forfeits += amount
                self._total_paid_out -= amount
            raise
        with self._accounts_lock:
            self._forfeited += amount
        logger.info(f"Swept {amount} unclaimed forfeits to treasury {treasury}")
        return amount

    def withdraw_retained_fees(self, caller: str) -> int:
        """Send fees whose transfer failed at completion to the fee recipient."""
        self._require_admin(caller)
        recipient = self.fee_config.fee_recipient
        if not recipient:
            raise MissingRecipientError("No fee recipient configured", {"caller": caller})
        with self._accounts_lock:
            amount = self._retained_fees
            if amount == 0:
                return 0
            self._retained_fees -= amount
            self._total_paid_out += amount
        try:
            self._push(recipient, amount, None)
        except TransferFailedError:
            with self._accounts_lock:
                self._retained_fees += amount
                self._total_paid_out -= amount
            raise
        with self._accounts_lock:
            self._fees_paid += amount
        logger.info(f"Withdrew {amount} retained fees to {recipient}")
        return amount

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_challenge(self, challenge_id: str) -> Challenge:
        return self.store.get_challenge(challenge_id).copy()

    def get_voting_record(self, challenge_id: str) -> VotingRecord:
        return self.store.get_voting(challenge_id).copy()

    def has_voted(self, challenge_id: str, voter: str) -> bool:
        return self.store.get_voting(challenge_id).has_voted(voter)

    def get_vote(self, challenge_id: str, voter: str) -> bool | None:
        """True for yes, False for no, None if the voter has not voted."""
        ballot = self.store.get_voting(challenge_id).ballot_of(voter)
        if ballot == Ballot.UNSET:
            return None
        return ballot == Ballot.YES

    def list_challenges(self, owner: str | None = None, state: ChallengeState | None = None) -> list[Challenge]:
        return [c.copy() for c in self.store.list_challenges(owner=owner, state=state)]

    def custody_report(self) -> CustodyReport:
        with self._accounts_lock:
            return CustodyReport(
                total_received=self._total_received,
                total_paid_out=self._total_paid_out,
                locked=self._locked,
                fees_paid=self._fees_paid,
                forfeited=self._forfeited,
                unclaimed_forfeits=self._unclaimed_forfeits,
                retained_fees=self._retained_fees,
            )

    def reconcile(self) -> CustodyReport:
        """Verify custody accounts and vote tallies against the records.

        Raises:
            CustodyInvariantError: If any account or tally disagrees.
        """
        report = self.custody_report()
        if not report.balanced:
            raise CustodyInvariantError("Custody balance does not match locked and held funds", report.to_dict())

        locked = 0
        for challenge in self.store.list_challenges():
            voting = self.store.get_voting(challenge.id)
            if voting.recount() != (voting.yes_count, voting.no_count):
                raise CustodyInvariantError(
                    f"Vote tally mismatch for challenge {challenge.id}",
                    {"challenge_id": challenge.id, "recount": list(voting.recount())},
                )
            if voting.votes_cast > voting.guarantor_count:
                raise CustodyInvariantError(f"More votes than guarantors on challenge {challenge.id}")
            if challenge.is_terminal:
                if challenge.disbursement is None:
                    raise CustodyInvariantError(f"Terminal challenge {challenge.id} has no disbursement")
                if challenge.disbursement.total != challenge.amount:
                    raise CustodyInvariantError(
                        f"Challenge {challenge.id} disbursed {challenge.disbursement.total} of {challenge.amount}"
                    )
            else:
                locked += challenge.amount

        if locked != report.locked:
            raise CustodyInvariantError(
                "Locked amount does not match active challenges",
                {"locked": report.locked, "recomputed": locked},
            )
        return report

    # =========================================================================
    # INTERNAL EFFECTS
    # =========================================================================

    def _enter_remediation(
        self,
        challenge: Challenge,
        now: int,
        pending: list[tuple[LedgerEventType, str, dict[str, Any]]],
    ) -> None:
        self._transition(challenge, ChallengeState.REMEDIATION_ACTIVE, pending)
        challenge.remediation_deadline = now + REMEDIATION_PERIOD
        pending.append(
            (LedgerEventType.REMEDIATION_STARTED, challenge.id, {"deadline": challenge.remediation_deadline})
        )
        logger.info(f"Challenge {challenge.id} granted Path of Redemption until {challenge.remediation_deadline}")

    def _forfeit(
        self,
        challenge: Challenge,
        now: int,
        pending: list[tuple[LedgerEventType, str, dict[str, Any]]],
    ) -> Disbursement:
        """Move to FAILED_FINAL and send the full deposit to the treasury."""
        self._transition(challenge, ChallengeState.FAILED_FINAL, pending)
        treasury = self.fee_config.treasury
        disbursement = Disbursement(
            recipient=treasury or "",
            amount=challenge.amount,
            forfeited=True,
            executed_at=now,
        )
        if treasury:
            self._check_solvent(challenge, challenge.amount)
            self._push(treasury, challenge.amount, challenge.id)
        else:
            logger.warning(f"No treasury configured; holding forfeited {challenge.amount} from {challenge.id}")
        pending.append(
            (
                LedgerEventType.FUNDS_FORFEITED,
                challenge.id,
                {"user": challenge.owner, "treasury": treasury, "amount": challenge.amount},
            )
        )
        challenge.disbursement = disbursement
        return disbursement

    def _release(
        self,
        challenge: Challenge,
        disbursement: Disbursement,
        pending: list[tuple[LedgerEventType, str, dict[str, Any]]],
    ) -> Disbursement:
        """Pay the owner, then the fee.

        A failed owner leg aborts the operation. A failed fee leg does
        not: the owner has already been paid, so the challenge completes
        and the fee stays in custody as a retained fee, announced with a
        FEE_RETAINED event and recoverable via ``withdraw_retained_fees``.
        """
        self._check_solvent(challenge, disbursement.total)
        self._push(disbursement.recipient, disbursement.amount, challenge.id)
        pending.append(
            (
                LedgerEventType.FUNDS_RELEASED,
                challenge.id,
                {"recipient": disbursement.recipient, "amount": disbursement.amount},
            )
        )
        if disbursement.fee and disbursement.fee_recipient:
            try:
                self._push(disbursement.fee_recipient, disbursement.fee, challenge.id)
            except TransferFailedError:
                logger.warning(
                    f"Fee transfer of {disbursement.fee} for {challenge.id} failed; retaining fee in custody"
                )
                pending.append(
                    (
                        LedgerEventType.FEE_RETAINED,
                        challenge.id,
                        {"intended_recipient": disbursement.fee_recipient, "amount": disbursement.fee},
                    )
                )
                return Disbursement(
                    recipient=disbursement.recipient,
                    amount=disbursement.amount,
                    fee=disbursement.fee,
                    fee_recipient=None,
                    executed_at=disbursement.executed_at,
                )
            pending.append(
                (
                    LedgerEventType.FEE_COLLECTED,
                    challenge.id,
                    {"recipient": disbursement.fee_recipient, "amount": disbursement.fee},
                )
            )
        return disbursement

    def _commit(
        self,
        challenge: Challenge,
        voting: VotingRecord | None,
        disbursement: Disbursement | None,
        pending: list[tuple[LedgerEventType, str, dict[str, Any]]],
        now: int,
    ) -> None:
        """Store the working copies, book funds and publish events. Call under the challenge lock."""
        self.store.commit(challenge, voting)
        self._settle(challenge, disbursement)
        self._emit(pending, now)

    def _settle(self, challenge: Challenge, disbursement: Disbursement | None) -> None:
        """Book a committed disbursement against the custody accounts."""
        if disbursement is None:
            return
        with self._accounts_lock:
            self._locked -= challenge.amount
            if disbursement.forfeited:
                if disbursement.recipient:
                    self._total_paid_out += disbursement.amount
                    self._forfeited += disbursement.amount
                else:
                    self._unclaimed_forfeits += disbursement.amount
                return
            self._total_paid_out += disbursement.amount
            if disbursement.fee_recipient:
                self._total_paid_out += disbursement.fee
                self._fees_paid += disbursement.fee
            else:
                self._retained_fees += disbursement.fee

    def _check_solvent(self, challenge: Challenge, total: int) -> None:
        with self._accounts_lock:
            balance = self._total_received - self._total_paid_out
            if total > challenge.amount or self._locked < challenge.amount or balance < total:
                raise CustodyInvariantError(
                    f"Disbursement of {total} for {challenge.id} not covered by custody",
                    {"challenge_id": challenge.id, "total": total, "locked": self._locked, "balance": balance},
                )

    def _transition(
        self,
        challenge: Challenge,
        new_state: ChallengeState,
        pending: list[tuple[LedgerEventType, str, dict[str, Any]]],
    ) -> None:
        previous = challenge.state
        if new_state not in ALLOWED_TRANSITIONS[previous]:
            sources = [state for state, targets in ALLOWED_TRANSITIONS.items() if new_state in targets]
            raise InvalidStateError(challenge.id, sources, previous)
        challenge.state = new_state
        pending.append(
            (
                LedgerEventType.STATE_CHANGED,
                challenge.id,
                {"previous_state": previous.value, "new_state": new_state.value},
            )
        )

    def _require_state(self, challenge: Challenge, *expected: ChallengeState) -> None:
        if challenge.state not in expected:
            raise InvalidStateError(challenge.id, expected, challenge.state)

    def _require_admin(self, caller: str) -> None:
        if self.admin is None or caller != self.admin:
            raise NotAuthorizedError(f"{caller} is not the ledger admin", {"caller": caller})

    def _update_fee_config(self, **changes: Any) -> None:
        current = self.fee_config.to_dict()
        current.update(changes)
        self.fee_config = FeeConfig(**current)
        logger.info(f"Fee configuration updated: {changes}")
        self._emit([(LedgerEventType.CONFIG_CHANGED, None, dict(changes))], self.clock.now())

    def _pull(self, source: str, amount: int, challenge_id: str) -> None:
        try:
            ok = self.token.transfer_in(source, amount)
        except Exception as e:
            logger.warning(f"transfer_in of {amount} from {source} for {challenge_id} raised: {e}")
            raise TransferFailedError(
                f"Deposit transfer failed: {e}",
                {"challenge_id": challenge_id, "source": source, "amount": amount},
            ) from e
        if not ok:
            logger.warning(f"transfer_in of {amount} from {source} for {challenge_id} failed")
            raise TransferFailedError(
                "Deposit transfer failed",
                {"challenge_id": challenge_id, "source": source, "amount": amount},
            )

    def _push(self, recipient: str, amount: int, challenge_id: str | None) -> None:
        try:
            ok = self.token.transfer_out(recipient, amount)
        except Exception as e:
            logger.warning(f"transfer_out of {amount} to {recipient} for {challenge_id} raised: {e}")
            raise TransferFailedError(
                f"Payout transfer failed: {e}",
                {"challenge_id": challenge_id, "recipient": recipient, "amount": amount},
            ) from e
        if not ok:
            logger.warning(f"transfer_out of {amount} to {recipient} for {challenge_id} failed")
            raise TransferFailedError(
                "Payout transfer failed",
                {"challenge_id": challenge_id, "recipient": recipient, "amount": amount},
            )

    def _emit(
        self,
        pending: Sequence[tuple[LedgerEventType, str | None, dict[str, Any]]],
        timestamp: int,
    ) -> None:
        """Append committed events to the log and forward them to mirrors."""
        with self._events_lock:
            published = []
            for event_type, challenge_id, data in pending:
                event = LedgerEvent(
                    sequence=len(self.events),
                    event_type=event_type,
                    challenge_id=challenge_id,
                    timestamp=timestamp,
                    data=data,
                )
                self.events.append(event)
                published.append(event)

            for event in published:
                for mirror in self.mirrors:
                    try:
                        mirror.publish(event)
                    except Exception as e:
                        logger.warning(f"Mirror {type(mirror).__name__} failed on event {event.sequence}: {e}")
