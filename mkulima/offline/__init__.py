"""Offline action queue and its synchronization engine.

Actions captured while disconnected are queued durably and delivered
in order once the remote system is reachable again.

Usage:
    from mkulima.offline import ActionQueue, SyncEngine, ConnectivityMonitor

    queue = ActionQueue.open(data_dir)
    action_id = queue.enqueue("ListingCreate", {"crop": "maize", ...})

    engine = SyncEngine(queue, gateway)
    monitor = ConnectivityMonitor(engine)
    await monitor.observe(True)  # drains the queue
"""
from mkulima.offline.actions import ActionKind, QueuedAction, UnknownActionKind
from mkulima.offline.store import QueueStore
from mkulima.offline.queue import ActionQueue
from mkulima.offline.gateway import EchoGateway, GatewayError, RemoteGateway, operation_for
from mkulima.offline.sync import ActionOutcome, PassSummary, SyncEngine, SyncEngineState
from mkulima.offline.connectivity import ConnectivityMonitor, is_reachable

__all__ = [
    # Model
    "ActionKind",
    "QueuedAction",
    "UnknownActionKind",
    # Queue
    "QueueStore",
    "ActionQueue",
    # Gateway
    "RemoteGateway",
    "GatewayError",
    "EchoGateway",
    "operation_for",
    # Sync
    "SyncEngine",
    "SyncEngineState",
    "PassSummary",
    "ActionOutcome",
    # Connectivity
    "ConnectivityMonitor",
    "is_reachable",
]
