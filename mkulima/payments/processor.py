"""Payment processor behind the PaymentSubmit queue action.

submit() validates and records a pending transaction, then queues it.
process() runs when the sync engine delivers the action: it asks the
authorization source for a verdict and settles the transaction.

A declined authorization is a terminal business failure: the transaction
is marked failed and the action leaves the queue. Only GatewayError
(delivery could not complete) keeps the action queued for another pass.
"""
import logging
from dataclasses import dataclass

from mkulima.constants import DEFAULT_PAYMENT_DESCRIPTION
from mkulima.core import events
from mkulima.core.events import EventHub
from mkulima.core.receipt import emit_receipt, utc_now
from mkulima.offline.actions import ActionKind
from mkulima.offline.gateway import RemoteGateway
from mkulima.offline.queue import ActionQueue

from .escrow import EscrowStateMachine
from .ledger import (
    EscrowStatus,
    Transaction,
    TransactionLedger,
    TransactionStatus,
    new_transaction_id,
)
from .providers import (
    InvalidPayment,
    Provider,
    compute_fee,
    get_provider,
    validate_payment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authorization:
    approved: bool
    reason: str | None = None


class AuthorizationSource:
    """Decides whether a payment is authorized."""

    async def authorize(self, transaction: Transaction, idempotency_key: str) -> Authorization:
        raise NotImplementedError


class StaticAuthorizer(AuthorizationSource):
    """Deterministic source that returns the same verdict every time."""

    def __init__(self, approved: bool = True, reason: str | None = None):
        self.approved = approved
        self.reason = reason if reason is not None or approved else "Invalid PIN"
        self.calls: list[str] = []

    async def authorize(self, transaction: Transaction, idempotency_key: str) -> Authorization:
        self.calls.append(transaction.id)
        return Authorization(self.approved, self.reason)


class GatewayAuthorizer(AuthorizationSource):
    """Asks the remote gateway's submit_payment for the verdict.

    GatewayError from the gateway propagates unchanged.
    """

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway

    async def authorize(self, transaction: Transaction, idempotency_key: str) -> Authorization:
        result = await self.gateway.submit_payment(transaction.to_dict(), idempotency_key)
        return Authorization(
            approved=bool(result.get("authorized")),
            reason=result.get("reason"),
        )


class PaymentProcessor:
    """Validates, queues and settles payments.

    Attributes:
        providers: Provider catalogue keyed by id
        escrow_enabled: Client-wide switch; escrow also has to be requested
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        escrow: EscrowStateMachine,
        authorizer: AuthorizationSource,
        queue: ActionQueue | None = None,
        hub: EventHub | None = None,
        providers: dict[str, Provider] | None = None,
        escrow_enabled: bool = True,
    ):
        self.ledger = ledger
        self.escrow = escrow
        self.authorizer = authorizer
        self.queue = queue
        self.hub = hub
        self.providers = providers
        self.escrow_enabled = escrow_enabled

    def provider(self, name: str) -> Provider:
        return get_provider(name, self.providers)

    def quote(self, provider: str, amount: float) -> tuple[float, float]:
        """Return (fee, total) for amount through provider."""
        return compute_fee(self.provider(provider), amount)

    def validate(self, provider: str, amount: float, phone: str) -> Provider:
        """Run business rules, returning the provider on success."""
        p = self.provider(provider)
        validate_payment(p, amount, phone)
        return p

    def submit(
        self,
        user_id: str,
        provider: str,
        amount: float,
        phone: str,
        escrow: bool = False,
        description: str = DEFAULT_PAYMENT_DESCRIPTION,
    ) -> Transaction:
        """Validate a payment, record it as pending and queue it for delivery.

        Raises:
            UnknownProvider, InvalidPayment, AmountOutOfRange: Before anything
                is recorded or queued
        """
        if not user_id:
            raise InvalidPayment("You must be logged in to make payments")
        if self.queue is None:
            raise RuntimeError("PaymentProcessor has no queue to submit into")

        p = self.validate(provider, amount, phone)
        fee, total = compute_fee(p, amount)

        tx = self.ledger.record(Transaction(
            id=new_transaction_id(),
            user_id=user_id,
            provider=p.name,
            amount=amount,
            fee=fee,
            total=total,
            currency=p.currency,
            phone=phone,
            description=description or DEFAULT_PAYMENT_DESCRIPTION,
            escrow_enabled=self.escrow_enabled and bool(escrow),
        ))
        self.queue.enqueue(ActionKind.PAYMENT_SUBMIT, {
            "transaction_id": tx.id,
            "user_id": user_id,
            "provider": p.name,
            "amount": amount,
            "phone": phone,
            "escrow": tx.escrow_enabled,
        })
        logger.info("Queued payment %s: %s %s via %s", tx.id, total, p.currency, p.name)
        return tx

    async def process(self, payload: dict, idempotency_key: str) -> dict:
        """Settle the transaction named by a PaymentSubmit payload.

        Redelivery of an already settled transaction returns it unchanged.

        Returns:
            The settled transaction as a dict

        Raises:
            InvalidPayment: If the payload names no transaction
            TransactionNotFound: If the ledger has no such transaction
        """
        transaction_id = payload.get("transaction_id")
        if not transaction_id:
            raise InvalidPayment("PaymentSubmit payload has no transaction_id")
        tx = self.ledger.get(transaction_id)

        if tx.status is TransactionStatus.PENDING:
            verdict = await self.authorizer.authorize(tx, idempotency_key)
            if verdict.approved:
                self.complete(tx.id)
            else:
                self.fail(tx.id, verdict.reason or "Authorization declined")
        elif self._needs_escrow(tx):
            self.escrow.hold(tx)

        return self.ledger.get(tx.id).to_dict()

    def complete(self, transaction_id: str) -> Transaction:
        tx = self.ledger.update(
            transaction_id,
            status=TransactionStatus.COMPLETED,
            completed_at=utc_now(),
        )
        if self._needs_escrow(tx):
            self.escrow.hold(tx)
            tx = self.ledger.get(tx.id)

        emit_receipt("payment_settled", {
            "transaction_id": tx.id,
            "status": tx.status.value,
            "total": tx.total,
            "currency": tx.currency,
        })
        if self.hub is not None:
            self.hub.emit(events.PAYMENT_COMPLETED, {
                "transaction_id": tx.id,
                "escrow_status": tx.escrow_status.value,
            })
        return tx

    def fail(self, transaction_id: str, reason: str) -> Transaction:
        tx = self.ledger.update(
            transaction_id,
            status=TransactionStatus.FAILED,
            failure_reason=reason,
        )
        logger.warning("Payment %s failed: %s", tx.id, reason)
        if self.hub is not None:
            self.hub.emit(events.PAYMENT_FAILED, {
                "transaction_id": tx.id,
                "reason": reason,
            })
        return tx

    def apply_callback(self, transaction_id: str, status: str, reason: str | None = None) -> Transaction:
        """Apply a mobile-money provider callback to a pending transaction.

        Callbacks for settled transactions are ignored.
        """
        target = TransactionStatus(status)
        tx = self.ledger.get(transaction_id)
        if tx.status is not TransactionStatus.PENDING or target is TransactionStatus.PENDING:
            return tx
        if target is TransactionStatus.COMPLETED:
            return self.complete(transaction_id)
        return self.fail(transaction_id, reason or "Declined by provider")

    def get_transaction(self, transaction_id: str) -> Transaction:
        return self.ledger.get(transaction_id)

    def list_transactions(self, user_id: str | None = None) -> list[Transaction]:
        return self.ledger.list_transactions(user_id)

    def escrow_transactions(self) -> list[Transaction]:
        return self.ledger.escrow_transactions()

    def _needs_escrow(self, tx: Transaction) -> bool:
        return (
            tx.escrow_enabled
            and tx.status is TransactionStatus.COMPLETED
            and self.escrow.status_of(tx.id) is EscrowStatus.NONE
        )
