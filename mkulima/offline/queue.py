"""Pending action queue for offline operation.

In-memory ordered view over a QueueStore. Every mutation is durably
logged before the call returns, so a restart replays exactly the state of
the last completed mutation.

Design constraints:
- First-in-first-out, across persist/reload cycles
- Never rejects on payload content (callers validate before enqueue)
- attempts only ever increases for a given id
"""
import logging
from pathlib import Path

from mkulima.constants import COMPACT_THRESHOLD
from mkulima.core import events
from mkulima.core.events import EventHub
from mkulima.core.receipt import emit_receipt

from .actions import ActionKind, QueuedAction
from .store import QueueStore

logger = logging.getLogger(__name__)


class ActionQueue:
    """Ordered, durable collection of QueuedAction.

    Attributes:
        store: Backing QueueStore (the only writer of the queue log)
        compact_threshold: Superseded log entries tolerated before compaction
    """

    def __init__(
        self,
        store: QueueStore,
        hub: EventHub | None = None,
        compact_threshold: int = COMPACT_THRESHOLD,
    ):
        self.store = store
        self.hub = hub
        self.compact_threshold = compact_threshold
        self._actions: list[QueuedAction] = store.load()
        if self._actions:
            logger.info("Replayed %d pending actions from %s", len(self._actions), store.log.path)

    @classmethod
    def open(cls, data_dir: str | Path, **kwargs) -> "ActionQueue":
        """Open (or create) the queue persisted under data_dir."""
        return cls(QueueStore(data_dir), **kwargs)

    def enqueue(self, kind: ActionKind | str, payload: dict) -> str:
        """Append a new action and return its id.

        Args:
            kind: ActionKind or its string tag
            payload: Kind-specific data, already validated by the caller

        Returns:
            The id assigned to the action

        Raises:
            UnknownActionKind: If kind is not an ActionKind tag
        """
        action = QueuedAction.create(kind, payload)
        self.store.append_enqueue(action)
        self._actions.append(action)

        logger.debug("Enqueued %s %s", action.kind.value, action.id)
        if self.hub is not None:
            self.hub.emit(events.ACTION_ENQUEUED, {
                "action_id": action.id,
                "kind": action.kind.value,
                "queue_size": len(self._actions),
            })
        return action.id

    def list_pending(self) -> list[QueuedAction]:
        """Snapshot of pending actions in insertion order."""
        return [a.copy() for a in self._actions]

    def peek(self, n: int = 10) -> list[QueuedAction]:
        """Oldest n actions without removing them."""
        return [a.copy() for a in self._actions[:n]]

    def get(self, action_id: str) -> QueuedAction | None:
        action = self._find(action_id)
        return action.copy() if action else None

    def remove(self, action_id: str) -> None:
        """Delete an action. No-op if it is already gone."""
        action = self._find(action_id)
        if action is None:
            return

        self.store.append_remove(action_id)
        self._actions.remove(action)
        self._maybe_compact()

    def record_failure(self, action_id: str, error: str) -> QueuedAction | None:
        """Count a failed dispatch attempt. The action stays queued.

        Returns:
            Updated snapshot of the action, or None if it is not queued
        """
        index = self._index(action_id)
        if index is None:
            return None

        updated = self._actions[index].copy()
        updated.attempts += 1
        updated.last_error = error
        self.store.append_attempt(updated)
        self._actions[index] = updated
        self._maybe_compact()
        return updated.copy()

    def dead_letter(self, action_id: str, reason: str) -> dict | None:
        """Move an action out of the queue into the dead-letter log."""
        action = self._find(action_id)
        if action is None:
            return None

        record = self.store.append_dead_letter(action, reason)
        self.store.append_remove(action_id)
        self._actions.remove(action)
        self._maybe_compact()

        logger.warning("Dead-lettered %s %s after %d attempts: %s",
                       action.kind.value, action.id, action.attempts, reason)
        if self.hub is not None:
            self.hub.emit(events.ACTION_DEAD_LETTERED, {
                "action_id": action.id,
                "kind": action.kind.value,
                "attempts": action.attempts,
                "reason": reason,
            })
        return record

    def list_dead_letters(self) -> list[dict]:
        return self.store.load_dead_letters()

    def size(self) -> int:
        return len(self._actions)

    def __len__(self) -> int:
        return self.size()

    def clear(self) -> int:
        """Drop every pending action. Returns how many were dropped."""
        dropped = len(self._actions)
        self._actions = []
        self.store.compact([])

        emit_receipt("queue_cleared", {
            "dropped_count": dropped,
        })
        return dropped

    def compact(self) -> None:
        """Rewrite the backing log as one entry per live action."""
        self.store.compact(self._actions)

    def get_status(self) -> dict:
        """Queue summary for status surfaces."""
        return {
            "pending_count": len(self._actions),
            "dead_letter_count": len(self.list_dead_letters()),
            "oldest_enqueued_at": self._actions[0].enqueued_at if self._actions else None,
            "log_entries": self.store.entry_count,
        }

    def _index(self, action_id: str) -> int | None:
        for i, action in enumerate(self._actions):
            if action.id == action_id:
                return i
        return None

    def _find(self, action_id: str) -> QueuedAction | None:
        index = self._index(action_id)
        return None if index is None else self._actions[index]

    def _maybe_compact(self) -> None:
        superseded = self.store.entry_count - len(self._actions)
        if not self._actions or superseded >= self.compact_threshold:
            self.compact()
