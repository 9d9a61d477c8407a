"""Tests for the offline action queue and its durable store."""
import json

import pytest

from mkulima.core import events
from mkulima.core.receipt import StopRule
from mkulima.offline.actions import ActionKind, UnknownActionKind
from mkulima.offline.queue import ActionQueue
from mkulima.offline.store import QueueStore


def reopen(data_dir, **kwargs) -> ActionQueue:
    """Simulate a restart: fresh queue over the same files."""
    return ActionQueue(QueueStore(data_dir), **kwargs)


class TestEnqueue:
    """Tests for enqueue."""

    def test_enqueue_returns_id(self, queue):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {"crop": "maize"})
        assert action_id.startswith("act_")
        assert queue.size() == 1

    def test_new_action_has_zero_attempts(self, queue):
        action_id = queue.enqueue("MessageSend", {"to": "u2", "text": "hi"})
        action = queue.get(action_id)
        assert action.attempts == 0
        assert action.last_error is None
        assert action.kind is ActionKind.MESSAGE_SEND
        assert action.enqueued_at.endswith("Z")

    def test_ids_are_unique(self, queue):
        ids = {queue.enqueue(ActionKind.PROFILE_UPDATE, {"n": i}) for i in range(50)}
        assert len(ids) == 50

    def test_enqueue_accepts_any_payload(self, queue):
        queue.enqueue(ActionKind.LISTING_UPDATE, {})
        queue.enqueue(ActionKind.LISTING_UPDATE, {"price": -1, "weird": [None]})
        assert queue.size() == 2

    def test_unknown_kind_is_programming_error(self, queue):
        with pytest.raises(UnknownActionKind):
            queue.enqueue("ListingDelete", {})
        assert issubclass(UnknownActionKind, StopRule)
        assert queue.size() == 0

    def test_enqueue_emits_event(self, queue, hub):
        queue.enqueue(ActionKind.LISTING_CREATE, {})
        assert hub.count(events.ACTION_ENQUEUED) == 1


class TestOrdering:
    """Insertion order holds in memory and across restarts."""

    def test_list_pending_in_insertion_order(self, queue):
        kinds = [ActionKind.LISTING_CREATE, ActionKind.LISTING_UPDATE,
                 ActionKind.MESSAGE_SEND, ActionKind.PAYMENT_SUBMIT,
                 ActionKind.PROFILE_UPDATE, ActionKind.LISTING_UPDATE]
        ids = [queue.enqueue(k, {"i": i}) for i, k in enumerate(kinds)]

        assert [a.id for a in queue.list_pending()] == ids
        assert [a.payload["i"] for a in queue.list_pending()] == list(range(6))

    def test_order_survives_restart(self, queue, data_dir):
        ids = [queue.enqueue(ActionKind.MESSAGE_SEND, {"i": i}) for i in range(20)]
        queue.remove(ids[3])
        queue.record_failure(ids[7], "timeout")

        restarted = reopen(data_dir)
        expected = [i for i in ids if i != ids[3]]
        assert [a.id for a in restarted.list_pending()] == expected
        assert restarted.get(ids[7]).attempts == 1
        assert restarted.get(ids[7]).last_error == "timeout"

    def test_list_pending_does_not_mutate(self, queue):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {"crop": "beans"})
        snapshot = queue.list_pending()
        snapshot[0].payload["crop"] = "changed"
        snapshot[0].attempts = 99
        snapshot.clear()

        action = queue.get(action_id)
        assert action.payload["crop"] == "beans"
        assert action.attempts == 0
        assert queue.size() == 1

    def test_peek_returns_oldest(self, queue):
        first = queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.enqueue(ActionKind.LISTING_CREATE, {})
        peeked = queue.peek(1)
        assert len(peeked) == 1
        assert peeked[0].id == first


class TestRemove:
    """Tests for remove."""

    def test_remove_deletes(self, queue):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.remove(action_id)
        assert queue.size() == 0
        assert queue.get(action_id) is None

    def test_remove_twice_same_as_once(self, queue, data_dir):
        a = queue.enqueue(ActionKind.LISTING_CREATE, {})
        b = queue.enqueue(ActionKind.LISTING_UPDATE, {})

        queue.remove(a)
        after_once = [x.id for x in queue.list_pending()]
        queue.remove(a)
        after_twice = [x.id for x in queue.list_pending()]

        assert after_once == after_twice == [b]
        assert [x.id for x in reopen(data_dir).list_pending()] == [b]

    def test_remove_unknown_is_noop(self, queue):
        queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.remove("act_missing")
        assert queue.size() == 1


class TestRecordFailure:
    """Tests for record_failure."""

    def test_failure_increments_attempts(self, queue):
        action_id = queue.enqueue(ActionKind.PROFILE_UPDATE, {})
        queue.record_failure(action_id, "503")
        updated = queue.record_failure(action_id, "timeout")

        assert updated.attempts == 2
        assert updated.last_error == "timeout"
        assert queue.size() == 1

    def test_failure_on_missing_action(self, queue):
        assert queue.record_failure("act_missing", "boom") is None

    def test_failed_write_leaves_action_unchanged(self, queue, monkeypatch):
        action_id = queue.enqueue(ActionKind.MESSAGE_SEND, {})

        def disk_full(entry):
            raise OSError("No space left on device")

        monkeypatch.setattr(queue.store.log, "append", disk_full)
        with pytest.raises(OSError):
            queue.record_failure(action_id, "timeout")

        action = queue.get(action_id)
        assert action.attempts == 0
        assert action.last_error is None


class TestPersistence:
    """Tests for the append-only log and compaction."""

    def test_each_mutation_is_on_disk(self, queue, data_dir):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {"crop": "rice"})
        assert reopen(data_dir).size() == 1

        queue.record_failure(action_id, "offline")
        assert reopen(data_dir).get(action_id).attempts == 1

        queue.remove(action_id)
        assert reopen(data_dir).size() == 0

    def test_log_is_append_only_until_compaction(self, queue, data_dir):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.record_failure(action_id, "x")

        lines = (data_dir / "pending_action_queue.jsonl").read_text().splitlines()
        ops = [json.loads(line)["op"] for line in lines]
        assert ops == ["enqueue", "enqueue", "attempt"]

    def test_compaction_keeps_live_state(self, data_dir):
        queue = reopen(data_dir, compact_threshold=3)
        ids = [queue.enqueue(ActionKind.MESSAGE_SEND, {"i": i}) for i in range(5)]
        for action_id in ids[:3]:
            queue.remove(action_id)

        path = data_dir / "pending_action_queue.jsonl"
        assert len(path.read_text().splitlines()) < 8
        assert [a.id for a in reopen(data_dir).list_pending()] == ids[3:]

        queue.compact()
        assert len(path.read_text().splitlines()) == 2
        assert [a.id for a in reopen(data_dir).list_pending()] == ids[3:]

    def test_torn_tail_is_ignored(self, queue, data_dir):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {})
        with open(data_dir / "pending_action_queue.jsonl", "a") as f:
            f.write('{"op": "enqueue", "action": {"id": "act_to')

        restarted = reopen(data_dir)
        assert [a.id for a in restarted.list_pending()] == [action_id]

        second = restarted.enqueue(ActionKind.LISTING_UPDATE, {})
        assert [a.id for a in reopen(data_dir).list_pending()] == [action_id, second]

    def test_corrupt_middle_entry_stops(self, queue, data_dir):
        queue.enqueue(ActionKind.LISTING_CREATE, {})
        path = data_dir / "pending_action_queue.jsonl"
        good = path.read_text()
        path.write_text("not json\n" + good)

        with pytest.raises(StopRule):
            reopen(data_dir)

    def test_attempts_never_decrease_on_replay(self, queue, data_dir):
        action_id = queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.record_failure(action_id, "a")
        queue.record_failure(action_id, "b")
        with open(data_dir / "pending_action_queue.jsonl", "a") as f:
            f.write(json.dumps({"op": "attempt", "id": action_id, "attempts": 1,
                                "last_error": "stale"}) + "\n")

        assert reopen(data_dir).get(action_id).attempts == 2


class TestDeadLetter:
    """Tests for the dead-letter log."""

    def test_dead_letter_moves_action(self, queue, data_dir, hub):
        action_id = queue.enqueue(ActionKind.LISTING_UPDATE, {"price": 10})
        queue.record_failure(action_id, "bad request")

        record = queue.dead_letter(action_id, "bad request")

        assert record["action"]["id"] == action_id
        assert queue.size() == 0
        assert len(queue.list_dead_letters()) == 1
        assert reopen(data_dir).size() == 0
        assert hub.count(events.ACTION_DEAD_LETTERED) == 1


class TestStatus:

    def test_clear_and_status(self, queue, receipts):
        queue.enqueue(ActionKind.LISTING_CREATE, {})
        queue.enqueue(ActionKind.LISTING_CREATE, {})

        status = queue.get_status()
        assert status["pending_count"] == 2
        assert status["oldest_enqueued_at"] is not None

        assert queue.clear() == 2
        assert queue.get_status()["pending_count"] == 0
        assert any(r["receipt_type"] == "queue_cleared" for r in receipts)
