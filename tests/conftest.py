"""Pytest fixtures for Mkulima tests."""
import asyncio

import pytest

from mkulima.config import MkulimaConfig
from mkulima.core.events import EventHub
from mkulima.core.receipt import set_receipt_sink
from mkulima.offline.gateway import GatewayError, RemoteGateway
from mkulima.offline.queue import ActionQueue
from mkulima.offline.store import QueueStore
from mkulima.payments.escrow import EscrowStateMachine
from mkulima.payments.ledger import TransactionLedger
from mkulima.payments.processor import PaymentProcessor, StaticAuthorizer
from mkulima.payments.providers import Provider


class RecordingGateway(RemoteGateway):
    """Gateway stub that records call order.

    Payloads carrying {"fail": True}, and keys listed in failing, raise
    GatewayError, non-retryable when the payload also has
    {"retryable": False}. Each call yields to the event loop once.
    Everything else succeeds with {"ok": True, "key": idempotency_key}.
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.hook = None
        self.failing: set[str] = set()

    async def _call(self, op: str, payload: dict, key: str) -> dict:
        self.calls.append((op, key))
        await asyncio.sleep(0)
        if self.hook is not None:
            await self.hook(op, payload, key)
        if payload.get("fail") or key in self.failing:
            raise GatewayError(
                payload.get("error", "backend unavailable"),
                status=503,
                retryable=payload.get("retryable", True),
            )
        return {"ok": True, "key": key}

    async def create_listing(self, payload, idempotency_key):
        return await self._call("create_listing", payload, idempotency_key)

    async def update_listing(self, payload, idempotency_key):
        return await self._call("update_listing", payload, idempotency_key)

    async def send_message(self, payload, idempotency_key):
        return await self._call("send_message", payload, idempotency_key)

    async def submit_payment(self, payload, idempotency_key):
        result = await self._call("submit_payment", payload, idempotency_key)
        return {**result, "authorized": True}

    async def update_profile(self, payload, idempotency_key):
        return await self._call("update_profile", payload, idempotency_key)


@pytest.fixture(autouse=True)
def receipts():
    """Collect emitted receipts instead of printing them."""
    collected: list[dict] = []
    set_receipt_sink(collected.append)
    yield collected
    set_receipt_sink(None)


@pytest.fixture
def data_dir(tmp_path):
    """Provide an empty data directory."""
    path = tmp_path / "mkulima"
    path.mkdir()
    return path


@pytest.fixture
def hub():
    return EventHub("test_tenant")


@pytest.fixture
def queue(data_dir, hub):
    """Provide an ActionQueue persisted under data_dir."""
    return ActionQueue(QueueStore(data_dir), hub=hub)


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def ledger(data_dir):
    return TransactionLedger(data_dir)


@pytest.fixture
def escrow(data_dir, ledger, hub):
    return EscrowStateMachine(data_dir, ledger, hub=hub)


@pytest.fixture
def authorizer():
    return StaticAuthorizer(approved=True)


@pytest.fixture
def test_provider():
    """Provider with limits [1000, 1000000] and a 1.5% fee."""
    return Provider("testpay", "Test Pay", "TSH", 1.5, 0, 1000, 1000000, ("TZ",))


@pytest.fixture
def processor(ledger, escrow, authorizer, queue, hub, test_provider):
    return PaymentProcessor(
        ledger,
        escrow,
        authorizer,
        queue=queue,
        hub=hub,
        providers={"testpay": test_provider},
    )


@pytest.fixture
def config(data_dir):
    return MkulimaConfig(data_dir=data_dir)
