"""Escrow state machine.

States: none -> held -> released

none -> held happens once, when a transaction completes with escrow
enabled. held -> released happens only through release_escrow, which is
idempotent. Records are never deleted.
"""
import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path

from mkulima.constants import DEFAULT_RELEASE_CONDITIONS, DEFAULT_RELEASE_REASON, ESCROW_FILENAME
from mkulima.core import events
from mkulima.core.events import EventHub
from mkulima.core.receipt import utc_now
from mkulima.core.store import LogStore

from .ledger import EscrowStatus, Transaction, TransactionLedger, TransactionStatus

logger = logging.getLogger(__name__)


class EscrowError(Exception):
    """Base class for escrow misuse."""
    pass


class EscrowNotFound(EscrowError):
    pass


class EscrowAlreadyHeld(EscrowError):
    pass


class InvalidEscrowTransition(EscrowError):
    pass


# Valid state transitions
VALID_TRANSITIONS = {
    EscrowStatus.NONE: {EscrowStatus.HELD},
    EscrowStatus.HELD: {EscrowStatus.RELEASED},
    EscrowStatus.RELEASED: set(),  # Terminal state
}


@dataclass
class EscrowRecord:
    """Funds held against one completed transaction."""
    transaction_id: str
    amount: float
    currency: str
    buyer_id: str
    status: EscrowStatus = EscrowStatus.HELD
    held_at: str = field(default_factory=utc_now)
    released_at: str | None = None
    release_reason: str | None = None
    release_conditions: list[str] = field(default_factory=lambda: list(DEFAULT_RELEASE_CONDITIONS))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "EscrowRecord":
        return cls(**{**data, "status": EscrowStatus(data["status"])})


class EscrowStateMachine:
    """Tracks held/released escrow for completed transactions."""

    def __init__(
        self,
        data_dir: str | Path,
        ledger: TransactionLedger,
        hub: EventHub | None = None,
    ):
        self.log = LogStore(Path(data_dir) / ESCROW_FILENAME)
        self.ledger = ledger
        self.hub = hub
        self._records: dict[str, EscrowRecord] = {}
        for entry in self.log.read_all():
            record = EscrowRecord.from_dict(entry)
            self._records[record.transaction_id] = record

    def status_of(self, transaction_id: str) -> EscrowStatus:
        record = self._records.get(transaction_id)
        return record.status if record else EscrowStatus.NONE

    def get(self, transaction_id: str) -> EscrowRecord:
        record = self._records.get(transaction_id)
        if record is None:
            raise EscrowNotFound(f"Escrow record not found: {transaction_id}")
        return record

    def list_records(self, status: EscrowStatus | None = None) -> list[EscrowRecord]:
        return [r for r in self._records.values() if status is None or r.status is status]

    def hold(self, transaction: Transaction) -> EscrowRecord:
        """Move a completed, escrow-enabled transaction from none to held.

        Raises:
            EscrowAlreadyHeld: If a record already exists for the transaction
            InvalidEscrowTransition: If the transaction is not eligible
        """
        if transaction.id in self._records:
            raise EscrowAlreadyHeld(f"Escrow already exists for {transaction.id}")
        if not transaction.escrow_enabled:
            raise InvalidEscrowTransition(f"Escrow not enabled for {transaction.id}")
        if transaction.status is not TransactionStatus.COMPLETED:
            raise InvalidEscrowTransition(
                f"Cannot hold escrow for {transaction.status.value} transaction {transaction.id}"
            )

        record = EscrowRecord(
            transaction_id=transaction.id,
            amount=transaction.amount,
            currency=transaction.currency,
            buyer_id=transaction.user_id,
        )
        self.log.append(record.to_dict())
        self._records[transaction.id] = record
        self.ledger.update(transaction.id, escrow_status=EscrowStatus.HELD)

        logger.info("Escrow held for %s: %s %s", transaction.id, record.amount, record.currency)
        return record

    def release_escrow(self, transaction_id: str, reason: str = DEFAULT_RELEASE_REASON) -> EscrowRecord:
        """Release held funds. Releasing twice is a no-op.

        Raises:
            EscrowNotFound: If no escrow was ever held for the transaction
        """
        record = self.get(transaction_id)
        if record.status is EscrowStatus.RELEASED:
            return record
        if EscrowStatus.RELEASED not in VALID_TRANSITIONS[record.status]:
            raise InvalidEscrowTransition(f"Cannot release escrow in state {record.status.value}")

        record = replace(
            record,
            status=EscrowStatus.RELEASED,
            released_at=utc_now(),
            release_reason=reason,
        )
        self.log.append(record.to_dict())
        self._records[transaction_id] = record

        if self.ledger.find(transaction_id) is not None:
            self.ledger.update(transaction_id, escrow_status=EscrowStatus.RELEASED)

        logger.info("Escrow released for %s (%s)", transaction_id, reason)
        if self.hub is not None:
            self.hub.emit(events.ESCROW_RELEASED, {
                "transaction_id": transaction_id,
                "reason": reason,
            })
        return record
