"""Foreground/background transition signals.

The host application forwards its lifecycle events to :meth:`LifecycleSignals.emit`;
the update client only subscribes.  Listeners may be plain functions or
coroutine functions; coroutines are scheduled on the running loop and the
task handles are kept until they finish.  Emitting with no running loop
still calls plain listeners; coroutine listeners are dropped and logged.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from .models import AppState

LOGGER = logging.getLogger(__name__)

Listener = Callable[[AppState], "Awaitable[None] | None"]


class Subscription:
    def __init__(self, signals: LifecycleSignals, listener: Listener) -> None:
        self._signals = signals
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._listener in self._signals._listeners

    def remove(self) -> None:
        """Stop receiving events.  Safe to call more than once."""
        try:
            self._signals._listeners.remove(self._listener)
        except ValueError:
            pass


class LifecycleSignals:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self.state = AppState.active

    def add_listener(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, state: AppState | str) -> None:
        self.state = AppState(state)
        for listener in list(self._listeners):
            try:
                result = listener(self.state)
            except Exception:
                LOGGER.exception("Lifecycle listener failed")
                continue
            if not inspect.isawaitable(result):
                continue
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(result):
                    result.close()
                LOGGER.error("Lifecycle listener needs a running event loop; emit from the loop")
                continue
            task = asyncio.ensure_future(result, loop=loop)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error("Lifecycle listener failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for every listener coroutine scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
