"""Transaction ledger.

Transactions are never deleted, only status-updated. Each update appends
the full record to the log; replay keeps the latest version per id.
Listing returns newest first.
"""
import logging
import time
import uuid
from dataclasses import asdict, dataclass, replace
from enum import Enum
from pathlib import Path

from mkulima.constants import DEFAULT_PAYMENT_DESCRIPTION, LEDGER_FILENAME
from mkulima.core.receipt import utc_now
from mkulima.core.store import LogStore

from .providers import PaymentError

logger = logging.getLogger(__name__)


class TransactionNotFound(PaymentError):
    pass


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class EscrowStatus(str, Enum):
    NONE = "none"
    HELD = "held"
    RELEASED = "released"


def new_transaction_id() -> str:
    stamp = str(int(time.time() * 1000))[-8:]
    return f"TX{stamp}{uuid.uuid4().hex[:6].upper()}"


@dataclass
class Transaction:
    """One payment attempt."""
    id: str
    user_id: str
    provider: str
    amount: float
    fee: float
    total: float
    currency: str
    phone: str
    description: str = DEFAULT_PAYMENT_DESCRIPTION
    status: TransactionStatus = TransactionStatus.PENDING
    escrow_enabled: bool = False
    escrow_status: EscrowStatus = EscrowStatus.NONE
    created_at: str = ""
    completed_at: str | None = None
    failure_reason: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["escrow_status"] = self.escrow_status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        fields = dict(data)
        fields["status"] = TransactionStatus(fields.get("status", "pending"))
        fields["escrow_status"] = EscrowStatus(fields.get("escrow_status", "none"))
        return cls(**fields)


class TransactionLedger:
    """Owns every Transaction for its whole life."""

    def __init__(self, data_dir: str | Path):
        self.log = LogStore(Path(data_dir) / LEDGER_FILENAME)
        self._transactions: dict[str, Transaction] = {}
        for entry in self.log.read_all():
            tx = Transaction.from_dict(entry)
            # dict keeps first-insertion order, so creation order survives updates
            self._transactions[tx.id] = tx

    def record(self, transaction: Transaction) -> Transaction:
        """Add a new transaction."""
        if not transaction.created_at:
            transaction.created_at = utc_now()
        self.log.append(transaction.to_dict())
        self._transactions[transaction.id] = transaction
        return transaction

    def update(self, transaction_id: str, **changes) -> Transaction:
        """Persist field changes, then return the updated transaction.

        The stored transaction is replaced only after the log append
        succeeds. Callers holding an earlier copy must re-read with get().

        Raises:
            TransactionNotFound: If no transaction has the id
        """
        tx = self.get(transaction_id)
        for key in changes:
            if not hasattr(tx, key):
                raise AttributeError(f"Transaction has no field {key!r}")
        updated = replace(tx, **changes)
        self.log.append(updated.to_dict())
        self._transactions[transaction_id] = updated
        return updated

    def get(self, transaction_id: str) -> Transaction:
        tx = self._transactions.get(transaction_id)
        if tx is None:
            raise TransactionNotFound(f"Transaction not found: {transaction_id}")
        return tx

    def find(self, transaction_id: str) -> Transaction | None:
        return self._transactions.get(transaction_id)

    def list_transactions(self, user_id: str | None = None) -> list[Transaction]:
        """Transactions newest first, optionally for one user."""
        txs = reversed(list(self._transactions.values()))
        return [t for t in txs if user_id is None or t.user_id == user_id]

    def escrow_transactions(self) -> list[Transaction]:
        return [t for t in self.list_transactions() if t.escrow_enabled]

    def __len__(self) -> int:
        return len(self._transactions)
