"""Durable storage for the pending action queue.

The queue is persisted as an append-only log of operations:

    {"op": "enqueue", "action": {...}}
    {"op": "attempt", "id": ..., "attempts": n, "last_error": "..."}
    {"op": "remove", "id": ...}

Replaying the log in file order rebuilds the queue exactly as of the last
completed append. Compaction rewrites the log as one enqueue entry per live
action. Pure data access: no retry or ordering policy lives here.
"""
import logging
from pathlib import Path

from mkulima.constants import DEAD_LETTER_FILENAME, QUEUE_FILENAME
from mkulima.core.receipt import utc_now
from mkulima.core.store import LogStore

from .actions import QueuedAction

logger = logging.getLogger(__name__)

OP_ENQUEUE = "enqueue"
OP_ATTEMPT = "attempt"
OP_REMOVE = "remove"


class QueueStore:
    """Append-only operation log for queued actions plus a dead-letter log."""

    def __init__(self, data_dir: str | Path):
        data_dir = Path(data_dir)
        self.log = LogStore(data_dir / QUEUE_FILENAME)
        self.dead_letters = LogStore(data_dir / DEAD_LETTER_FILENAME)
        self.entry_count = 0

    def append_enqueue(self, action: QueuedAction) -> None:
        self.log.append({"op": OP_ENQUEUE, "action": action.to_dict()})
        self.entry_count += 1

    def append_attempt(self, action: QueuedAction) -> None:
        self.log.append({
            "op": OP_ATTEMPT,
            "id": action.id,
            "attempts": action.attempts,
            "last_error": action.last_error,
        })
        self.entry_count += 1

    def append_remove(self, action_id: str) -> None:
        self.log.append({"op": OP_REMOVE, "id": action_id})
        self.entry_count += 1

    def load(self) -> list[QueuedAction]:
        """Replay the log into the ordered list of live actions."""
        entries = self.log.read_all()
        self.entry_count = len(entries)

        live: dict[str, QueuedAction] = {}
        for entry in entries:
            op = entry.get("op")
            if op == OP_ENQUEUE:
                action = QueuedAction.from_dict(entry["action"])
                live.setdefault(action.id, action)
            elif op == OP_ATTEMPT:
                action = live.get(entry.get("id"))
                if action is not None:
                    # attempts never goes backwards, even across a stale entry
                    action.attempts = max(action.attempts, int(entry.get("attempts", 0)))
                    action.last_error = entry.get("last_error")
            elif op == OP_REMOVE:
                live.pop(entry.get("id"), None)
            else:
                logger.warning("Skipping unknown queue log op %r", op)

        return list(live.values())

    def compact(self, actions: list[QueuedAction]) -> None:
        """Rewrite the log to hold exactly actions, in order."""
        self.log.rewrite({"op": OP_ENQUEUE, "action": a.to_dict()} for a in actions)
        self.entry_count = len(actions)

    def append_dead_letter(self, action: QueuedAction, reason: str) -> dict:
        record = {
            "action": action.to_dict(),
            "reason": reason,
            "dead_lettered_at": utc_now(),
        }
        self.dead_letters.append(record)
        return record

    def load_dead_letters(self) -> list[dict]:
        return self.dead_letters.read_all()
