"""Tests for the escrow state machine."""
import pytest

from mkulima.core import events
from mkulima.payments.escrow import (
    VALID_TRANSITIONS,
    EscrowAlreadyHeld,
    EscrowNotFound,
    EscrowStateMachine,
    InvalidEscrowTransition,
)
from mkulima.payments.ledger import (
    EscrowStatus,
    Transaction,
    TransactionLedger,
    TransactionStatus,
    new_transaction_id,
)


def make_tx(ledger, escrow_enabled=True, status=TransactionStatus.COMPLETED, amount=5000):
    return ledger.record(Transaction(
        id=new_transaction_id(),
        user_id="buyer_1",
        provider="testpay",
        amount=amount,
        fee=75,
        total=amount + 75,
        currency="TSH",
        phone="0712345678",
        status=status,
        escrow_enabled=escrow_enabled,
    ))


class TestHold:
    """none -> held."""

    def test_hold_completed_escrow_tx(self, ledger, escrow):
        tx = make_tx(ledger)
        record = escrow.hold(tx)

        assert record.status is EscrowStatus.HELD
        assert record.buyer_id == "buyer_1"
        assert record.release_conditions == ["delivery_confirmed", "no_dispute_7days"]
        assert escrow.status_of(tx.id) is EscrowStatus.HELD
        assert ledger.get(tx.id).escrow_status is EscrowStatus.HELD

    def test_second_hold_rejected(self, ledger, escrow):
        tx = make_tx(ledger)
        escrow.hold(tx)
        with pytest.raises(EscrowAlreadyHeld):
            escrow.hold(tx)

    def test_hold_without_escrow_rejected(self, ledger, escrow):
        tx = make_tx(ledger, escrow_enabled=False)
        with pytest.raises(InvalidEscrowTransition):
            escrow.hold(tx)
        assert escrow.status_of(tx.id) is EscrowStatus.NONE

    def test_hold_pending_tx_rejected(self, ledger, escrow):
        tx = make_tx(ledger, status=TransactionStatus.PENDING)
        with pytest.raises(InvalidEscrowTransition):
            escrow.hold(tx)

    def test_unknown_tx_has_no_escrow(self, escrow):
        assert escrow.status_of("TX_missing") is EscrowStatus.NONE


class TestRelease:
    """held -> released."""

    def test_release(self, ledger, escrow, hub):
        tx = make_tx(ledger)
        escrow.hold(tx)

        record = escrow.release_escrow(tx.id, "delivery_confirmed")

        assert record.status is EscrowStatus.RELEASED
        assert record.release_reason == "delivery_confirmed"
        assert record.released_at is not None
        assert ledger.get(tx.id).escrow_status is EscrowStatus.RELEASED
        assert hub.count(events.ESCROW_RELEASED) == 1

    def test_release_is_idempotent(self, ledger, escrow, hub):
        tx = make_tx(ledger)
        escrow.hold(tx)

        first = escrow.release_escrow(tx.id, "delivery_confirmed")
        released_at = first.released_at
        second = escrow.release_escrow(tx.id, "buyer_confirmed")

        assert second.status is EscrowStatus.RELEASED
        assert second.released_at == released_at
        assert second.release_reason == "delivery_confirmed"
        assert hub.count(events.ESCROW_RELEASED) == 1

    def test_default_reason(self, ledger, escrow):
        tx = make_tx(ledger)
        escrow.hold(tx)
        assert escrow.release_escrow(tx.id).release_reason == "delivery_confirmed"

    def test_release_without_hold(self, ledger, escrow):
        tx = make_tx(ledger)
        with pytest.raises(EscrowNotFound):
            escrow.release_escrow(tx.id)
        with pytest.raises(EscrowNotFound):
            escrow.release_escrow("TX_missing")

    def test_released_is_terminal(self):
        assert VALID_TRANSITIONS[EscrowStatus.RELEASED] == set()
        assert EscrowStatus.HELD not in VALID_TRANSITIONS[EscrowStatus.HELD]


class TestPersistence:

    def test_records_survive_restart(self, data_dir, ledger, escrow):
        held = make_tx(ledger)
        released = make_tx(ledger)
        escrow.hold(held)
        escrow.hold(released)
        escrow.release_escrow(released.id)

        reloaded_ledger = TransactionLedger(data_dir)
        reloaded = EscrowStateMachine(data_dir, reloaded_ledger)

        assert reloaded.status_of(held.id) is EscrowStatus.HELD
        assert reloaded.status_of(released.id) is EscrowStatus.RELEASED
        assert [r.transaction_id for r in reloaded.list_records(EscrowStatus.HELD)] == [held.id]
        assert reloaded_ledger.get(released.id).escrow_status is EscrowStatus.RELEASED

    def test_failed_write_keeps_escrow_held(self, ledger, escrow, hub, monkeypatch):
        tx = make_tx(ledger)
        escrow.hold(tx)

        def disk_full(entry):
            raise OSError("No space left on device")

        monkeypatch.setattr(escrow.log, "append", disk_full)
        with pytest.raises(OSError):
            escrow.release_escrow(tx.id)

        assert escrow.status_of(tx.id) is EscrowStatus.HELD
        assert escrow.get(tx.id).released_at is None
        assert hub.count(events.ESCROW_RELEASED) == 0
