"""Sync engine for draining the pending action queue.

Handles the transition from offline to online state, delivering every
queued action to the remote gateway in the order it was captured.

Drain pass:
1. Snapshot pending actions (later enqueues wait for the next pass)
2. Dispatch each action to the gateway operation for its kind, one at a time
3. Success: remove from queue; failure: record the attempt, keep queued
4. Return to IDLE, emit sync-pass-completed with counts
"""
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable

from mkulima.core import events
from mkulima.core.events import EventHub
from mkulima.core.receipt import StopRule, utc_now

from .actions import ActionKind, QueuedAction
from .gateway import GatewayError, Operation, RemoteGateway, operation_for
from .queue import ActionQueue

logger = logging.getLogger(__name__)

ResultCallback = Callable[[QueuedAction, Any], None]


class SyncEngineState(Enum):
    IDLE = "idle"
    DRAINING = "draining"


@dataclass
class ActionOutcome:
    """How one action fared in a drain pass."""
    action_id: str
    kind: str
    ok: bool
    attempts: int
    result: Any = None
    error: str | None = None
    dead_lettered: bool = False


@dataclass
class PassSummary:
    """Aggregate result of one drain pass."""
    started_at: str
    finished_at: str | None = None
    succeeded_count: int = 0
    failed_count: int = 0
    dead_lettered_count: int = 0
    outcomes: list[ActionOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class SyncEngine:
    """Single-flight drainer for an ActionQueue.

    Attributes:
        queue: Queue to drain
        gateway: Remote gateway receiving each action
        processor: Optional handler for PaymentSubmit actions (takes the
            place of gateway.submit_payment)
        max_attempts: Optional retry ceiling; None retries forever
    """

    def __init__(
        self,
        queue: ActionQueue,
        gateway: RemoteGateway,
        processor=None,
        hub: EventHub | None = None,
        max_attempts: int | None = None,
    ):
        self.queue = queue
        self.gateway = gateway
        self.processor = processor
        self.hub = hub
        self.max_attempts = max_attempts
        self.last_summary: PassSummary | None = None
        self.pass_count = 0
        self._state = SyncEngineState.IDLE
        self._callbacks: dict[ActionKind, list[ResultCallback]] = {}

    @property
    def state(self) -> SyncEngineState:
        return self._state

    @property
    def is_draining(self) -> bool:
        return self._state is SyncEngineState.DRAINING

    def on_result(self, kind: ActionKind | str, callback: ResultCallback) -> None:
        """Forward successful results for kind to callback(action, result)."""
        self._callbacks.setdefault(ActionKind.parse(kind), []).append(callback)

    async def trigger(self) -> PassSummary | None:
        """Run one drain pass.

        Returns:
            The pass summary, or None if a pass was already in flight
        """
        if self._state is SyncEngineState.DRAINING:
            logger.debug("Sync trigger ignored, drain already in flight")
            return None

        self._state = SyncEngineState.DRAINING
        try:
            summary = await self._drain()
        finally:
            self._state = SyncEngineState.IDLE

        self.last_summary = summary
        self.pass_count += 1
        logger.info("Sync pass finished: %d succeeded, %d failed",
                    summary.succeeded_count, summary.failed_count)
        if self.hub is not None:
            self.hub.emit(events.SYNC_PASS_COMPLETED, {
                "succeeded_count": summary.succeeded_count,
                "failed_count": summary.failed_count,
                "dead_lettered_count": summary.dead_lettered_count,
                "pending_count": self.queue.size(),
            })
        return summary

    def _operation(self, kind: ActionKind) -> Operation:
        if kind is ActionKind.PAYMENT_SUBMIT and self.processor is not None:
            return self.processor.process
        return operation_for(self.gateway, kind)

    async def _drain(self) -> PassSummary:
        summary = PassSummary(started_at=utc_now())

        for action in self.queue.list_pending():
            operation = self._operation(action.kind)
            try:
                result = await operation(action.payload, action.id)
            except StopRule:
                raise
            except GatewayError as e:
                summary.outcomes.append(self._failed(action, str(e), e.retryable))
            except Exception as e:
                logger.exception("Dispatch of %s %s raised", action.kind.value, action.id)
                summary.outcomes.append(self._failed(
                    action,
                    f"{type(e).__name__}: {e}",
                    getattr(e, "retryable", True),
                ))
            else:
                self.queue.remove(action.id)
                summary.outcomes.append(ActionOutcome(
                    action_id=action.id,
                    kind=action.kind.value,
                    ok=True,
                    attempts=action.attempts + 1,
                    result=result,
                ))
                self._forward(action, result)

        summary.succeeded_count = sum(1 for o in summary.outcomes if o.ok)
        summary.failed_count = sum(1 for o in summary.outcomes if not o.ok)
        summary.dead_lettered_count = sum(1 for o in summary.outcomes if o.dead_lettered)
        summary.finished_at = utc_now()
        return summary

    def _failed(self, action: QueuedAction, error: str, retryable: bool = True) -> ActionOutcome:
        """Record a failed attempt.

        With a ceiling configured, the action is dead-lettered once it
        reaches max_attempts, or at once when the error is not retryable.
        Without one, every failed action stays queued.
        """
        logger.warning("Delivery of %s %s failed: %s", action.kind.value, action.id, error)
        updated = self.queue.record_failure(action.id, error)
        attempts = updated.attempts if updated else action.attempts + 1

        dead = False
        if updated and self.max_attempts is not None and (
            not retryable or attempts >= self.max_attempts
        ):
            self.queue.dead_letter(action.id, error)
            dead = True

        return ActionOutcome(
            action_id=action.id,
            kind=action.kind.value,
            ok=False,
            attempts=attempts,
            error=error,
            dead_lettered=dead,
        )

    def _forward(self, action: QueuedAction, result: Any) -> None:
        for callback in self._callbacks.get(action.kind, []):
            try:
                callback(action, result)
            except Exception:
                logger.exception("Result callback for %s failed", action.id)
