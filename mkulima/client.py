"""Client assembly.

MkulimaClient owns one instance of every component and wires them
together explicitly. Nothing is looked up from module globals.
"""
import logging

from mkulima.config import MkulimaConfig
from mkulima.core.events import EventHub
from mkulima.offline.actions import ActionKind
from mkulima.offline.connectivity import ConnectivityMonitor, Probe, is_reachable
from mkulima.offline.gateway import EchoGateway, RemoteGateway
from mkulima.offline.queue import ActionQueue
from mkulima.offline.store import QueueStore
from mkulima.offline.sync import PassSummary, SyncEngine
from mkulima.payments.escrow import EscrowStateMachine
from mkulima.payments.ledger import EscrowStatus, TransactionLedger
from mkulima.payments.processor import AuthorizationSource, GatewayAuthorizer, PaymentProcessor
from mkulima.payments.providers import InvalidPayment

logger = logging.getLogger(__name__)


class MkulimaClient:
    """Offline-capable client: queue, sync engine, connectivity and payments.

    Attributes:
        config: Settings the client was built from
        hub: Event hub shared by every component
        queue, engine, monitor: Offline delivery pipeline
        ledger, escrow, payments: Payment state and processing
    """

    def __init__(
        self,
        config: MkulimaConfig | None = None,
        gateway: RemoteGateway | None = None,
        authorizer: AuthorizationSource | None = None,
        probe: Probe | None = None,
        hub: EventHub | None = None,
    ):
        self.config = config or MkulimaConfig.from_env()
        errors = self.config.validate()
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        data_dir = self.config.data_dir
        self.hub = hub or EventHub(self.config.tenant_id)
        self.gateway = gateway or EchoGateway()

        self.queue = ActionQueue(
            QueueStore(data_dir),
            hub=self.hub,
            compact_threshold=self.config.compact_threshold,
        )
        self.ledger = TransactionLedger(data_dir)
        self.escrow = EscrowStateMachine(data_dir, self.ledger, hub=self.hub)
        self.payments = PaymentProcessor(
            self.ledger,
            self.escrow,
            authorizer or GatewayAuthorizer(self.gateway),
            queue=self.queue,
            hub=self.hub,
            escrow_enabled=self.config.escrow_enabled,
        )
        self.engine = SyncEngine(
            self.queue,
            self.gateway,
            processor=self.payments,
            hub=self.hub,
            max_attempts=self.config.max_attempts,
        )
        self.monitor = ConnectivityMonitor(
            self.engine,
            hub=self.hub,
            probe=probe or self._default_probe,
        )
        logger.debug("Client ready (data_dir=%s, pending=%d)", data_dir, self.queue.size())

    def _default_probe(self) -> bool:
        return is_reachable(
            self.config.probe_host,
            self.config.probe_port,
            self.config.probe_timeout,
        )

    def enqueue(self, kind: ActionKind | str, payload: dict) -> str:
        """Queue a listing, message or profile action.

        Raises:
            InvalidPayment: For PaymentSubmit, which must go through
                payments.submit so it is validated and recorded first
        """
        if ActionKind.parse(kind) is ActionKind.PAYMENT_SUBMIT:
            raise InvalidPayment("Payments must be submitted through payments.submit")
        return self.queue.enqueue(kind, payload)

    async def sync(self) -> PassSummary | None:
        """Manual sync trigger."""
        return await self.engine.trigger()

    async def watch(self, interval: float | None = None, max_checks: int | None = None) -> int:
        """Probe connectivity every interval seconds, draining on reconnect.

        Runs until monitor.stop() or after max_checks probes.
        Returns the number of probes made.
        """
        if interval is None:
            interval = self.config.check_interval
        return await self.monitor.run(interval, max_checks=max_checks)

    def release_escrow(self, transaction_id: str, reason: str | None = None):
        if reason is None:
            return self.escrow.release_escrow(transaction_id)
        return self.escrow.release_escrow(transaction_id, reason)

    def status(self) -> dict:
        return {
            **self.queue.get_status(),
            "online": self.monitor.is_online,
            "sync_state": self.engine.state.value,
            "transactions": len(self.ledger),
            "escrow_held": len(self.escrow.list_records(EscrowStatus.HELD)),
        }
