"""Named event hub for external collaborators.

Events flow one way: the core emits, the UI or notification surface listens.
Every emitted event is also written as a receipt.
"""
import logging
from collections import defaultdict, deque
from typing import Callable

from ..constants import EVENT_HISTORY_LIMIT
from .receipt import emit_receipt

logger = logging.getLogger(__name__)

BECAME_ONLINE = "became-online"
BECAME_OFFLINE = "became-offline"
SYNC_PASS_COMPLETED = "sync-pass-completed"
ESCROW_RELEASED = "escrow-released"
ACTION_ENQUEUED = "action-enqueued"
ACTION_DEAD_LETTERED = "action-dead-lettered"
PAYMENT_COMPLETED = "payment-completed"
PAYMENT_FAILED = "payment-failed"

Listener = Callable[[str, dict], None]


class EventHub:
    """Fan out named events to subscribed listeners.

    Attributes:
        tenant_id: Tenant stamped on the receipt for each event
    """

    def __init__(self, tenant_id: str = "default"):
        self.tenant_id = tenant_id
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self.history: deque[tuple[str, dict]] = deque(maxlen=EVENT_HISTORY_LIMIT)

    def subscribe(self, event: str, listener: Listener) -> None:
        """Register listener for event. Use "*" to receive everything."""
        self._listeners[event].append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def emit(self, event: str, data: dict) -> dict:
        """Deliver event to listeners and return the receipt written for it."""
        self.history.append((event, data))
        receipt = emit_receipt(event.replace("-", "_"), {
            "tenant_id": self.tenant_id,
            **data,
        })

        for listener in [*self._listeners.get(event, []), *self._listeners.get("*", [])]:
            try:
                listener(event, data)
            except Exception:
                # Listener errors are logged, never raised into the core
                logger.exception("Listener for %s failed", event)

        return receipt

    def count(self, event: str) -> int:
        """Number of times event has been emitted on this hub."""
        return sum(1 for name, _ in self.history if name == event)
