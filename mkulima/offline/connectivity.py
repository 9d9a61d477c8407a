"""Connectivity tracking and reconnection handling.

Turns raw reachability readings into edge events. A reading equal to the
current state emits nothing. When the client becomes reachable again with
work queued and no drain in flight, the attached sync engine is triggered.
That is the only automatic sync trigger.
"""
import asyncio
import logging
import socket
from typing import Callable

from mkulima.constants import PROBE_PORT, PROBE_TIMEOUT_SECONDS
from mkulima.core import events
from mkulima.core.events import EventHub

from .sync import PassSummary, SyncEngine

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]
ChangeCallback = Callable[[bool], None]


def is_reachable(
    host: str,
    port: int = PROBE_PORT,
    timeout: float = PROBE_TIMEOUT_SECONDS,
) -> bool:
    """Check if host:port accepts a TCP connection.

    Args:
        host: Host to probe. Empty means no probe target, assumed reachable.
        port: TCP port
        timeout: Connection timeout in seconds

    Returns:
        True if the connection succeeded
    """
    if not host:
        return True
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class ConnectivityMonitor:
    """Edge-triggered online/offline tracker.

    Attributes:
        engine: Sync engine drained on became-online (optional)
        probe: Callable returning current reachability, used by poll()
    """

    def __init__(
        self,
        engine: SyncEngine | None = None,
        hub: EventHub | None = None,
        probe: Probe | None = None,
    ):
        self.engine = engine
        self.hub = hub
        self.probe = probe or (lambda: is_reachable(""))
        self._online: bool | None = None
        self._callbacks: list[ChangeCallback] = []
        self._running = False

    @property
    def is_online(self) -> bool:
        return bool(self._online)

    def on_change(self, callback: ChangeCallback) -> None:
        """Register callback(online) fired on every transition."""
        self._callbacks.append(callback)

    async def observe(self, online: bool) -> PassSummary | None:
        """Record a reachability reading.

        Returns:
            Summary of the drain this reading triggered, if any
        """
        online = bool(online)
        if online == self._online:
            return None

        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")

        if self.hub is not None:
            self.hub.emit(events.BECAME_ONLINE if online else events.BECAME_OFFLINE, {})
        for callback in self._callbacks:
            try:
                callback(online)
            except Exception:
                logger.exception("Connectivity callback failed")

        if online:
            return await self._auto_sync()
        return None

    async def poll(self) -> PassSummary | None:
        """Probe once and observe the result."""
        reachable = await asyncio.to_thread(self.probe)
        return await self.observe(reachable)

    async def run(self, interval: float, max_checks: int | None = None) -> int:
        """Poll every interval seconds until stop() or max_checks probes.

        Returns:
            Number of probes made
        """
        self._running = True
        checks = 0
        logger.info("ConnectivityMonitor started (interval=%.2fs)", interval)
        while self._running:
            await self.poll()
            checks += 1
            if max_checks is not None and checks >= max_checks:
                break
            await asyncio.sleep(interval)
        self._running = False
        return checks

    def stop(self) -> None:
        self._running = False

    async def _auto_sync(self) -> PassSummary | None:
        engine = self.engine
        if engine is None or engine.queue.size() == 0 or engine.is_draining:
            return None
        return await engine.trigger()
