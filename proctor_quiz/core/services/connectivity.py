"""Tracks whether the persistence sink is reachable."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Callable

from proctor_quiz.constants.network_constants import (
    CONNECTIVITY_PROBE_HOST,
    CONNECTIVITY_PROBE_INTERVAL_SECONDS,
    CONNECTIVITY_PROBE_PORT,
    CONNECTIVITY_PROBE_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

OnlineListener = Callable[[], None]


def probe_connection(
    host: str = CONNECTIVITY_PROBE_HOST,
    port: int = CONNECTIVITY_PROBE_PORT,
    timeout: float = CONNECTIVITY_PROBE_TIMEOUT_SECONDS,
) -> bool:
    """Best-effort TCP reachability check."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class ConnectivityMonitor:
    """Holds the online flag and notifies listeners on offline -> online transitions.

    The student page reports the browser's ``online``/``offline`` events; the
    optional watcher task probes the network on an interval as well.
    """

    def __init__(self, online: bool = True, probe: Callable[[], bool] = probe_connection) -> None:
        self._online = online
        self._probe = probe
        self._listeners: list[OnlineListener] = []
        self._watch_task: asyncio.Task[None] | None = None

    @property
    def is_online(self) -> bool:
        return self._online

    def add_online_listener(self, listener: OnlineListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_online(self, online: bool) -> bool:
        """Record the current state; returns True when this was a transition to online."""
        was_online = self._online
        self._online = online
        if online == was_online:
            return False
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        if not online:
            return False
        for listener in list(self._listeners):
            listener()
        return True

    def start_watching(self, interval_seconds: float = CONNECTIVITY_PROBE_INTERVAL_SECONDS) -> None:
        if self._watch_task is not None and not self._watch_task.done():
            return
        self._watch_task = asyncio.get_running_loop().create_task(
            self._watch(interval_seconds), name="connectivity-watch"
        )

    def stop_watching(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None

    async def _watch(self, interval_seconds: float) -> None:
        while True:
            reachable = await asyncio.to_thread(self._probe)
            self.set_online(reachable)
            await asyncio.sleep(interval_seconds)
