"""Connectivity tracking with an edge-triggered reconnect event."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import aiohttp

_LOGGER = logging.getLogger(__name__)
_PROBE_TIMEOUT = aiohttp.ClientTimeout(total=10)

ReconnectListener = Callable[[], Awaitable[object]]
Probe = Callable[[], Awaitable[bool]]


class ConnectivityObserver:
    """Track connectivity and notify listeners when it comes back.

    Listeners run only on a disconnected -> connected transition. Repeated
    "connected" updates and connected -> disconnected transitions never
    notify.
    """

    def __init__(self, *, connected: bool = True) -> None:
        self._connected = connected
        self._listeners: list[ReconnectListener] = []
        self._tasks: set[asyncio.Task[object]] = set()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def add_listener(self, listener: ReconnectListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ReconnectListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update(self, connected: bool) -> bool:
        """Record the current state; return True when the reconnect edge fired.

        Listeners are scheduled on the running event loop, so a reconnect
        must be reported from inside that loop. Without one, ``RuntimeError``
        is raised and the state is left unchanged.
        """
        previous = self._connected
        if previous or not connected:
            self._connected = connected
            if previous and not connected:
                _LOGGER.info("Connectivity lost")
            return False
        listeners = list(self._listeners)
        loop = asyncio.get_running_loop() if listeners else None
        self._connected = True
        _LOGGER.info("Connectivity restored; notifying %d listener(s)", len(listeners))
        for listener in listeners:
            task = loop.create_task(listener())
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        return True

    async def wait_idle(self) -> None:
        """Wait for every running listener task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def poll(
        self,
        probe: Probe,
        interval: float,
        *,
        iterations: int | None = None,
    ) -> None:
        """Feed ``probe`` results into :meth:`update` every ``interval`` seconds."""
        count = 0
        while iterations is None or count < iterations:
            self.update(await probe())
            count += 1
            if iterations is not None and count >= iterations:
                break
            await asyncio.sleep(interval)

    def _task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.warning("Reconnect listener failed: %s", exc)


async def http_probe(
    session: aiohttp.ClientSession,
    url: str,
    *,
    timeout: aiohttp.ClientTimeout | None = None,
) -> bool:
    """Return True when ``url`` answers at all; any HTTP status counts."""
    try:
        async with session.head(url, timeout=timeout or _PROBE_TIMEOUT, ssl=True):
            return True
    except (aiohttp.ClientError, TimeoutError):
        return False
