"""
In-process row-change notifications.

Writers publish a `RowChange` after their transaction commits; live subscribers (the
WebSocket leads feed) react to it. Delivery is synchronous and best effort: a failing
subscriber is logged and does not affect the writer or other subscribers. The hub is
per process, so changes are only seen by connections served by the same worker.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from services.portal.app.logging import logger
from services.portal.app.observability import ROW_CHANGE_TOTAL


Op = Literal["INSERT", "UPDATE", "DELETE"]


@dataclass(frozen=True)
class RowChange:
    table: str
    op: Op
    row_id: UUID
    event_id: UUID | None = None


Listener = Callable[[RowChange], None]


class ChangeHub:
    def __init__(self) -> None:
        self._listeners: dict[int, tuple[frozenset[str], Listener]] = {}
        self._next_id = 0

    def subscribe(self, tables: Iterable[str], listener: Listener) -> Callable[[], None]:
        token = self._next_id
        self._next_id += 1
        self._listeners[token] = (frozenset(tables), listener)

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def publish(self, change: RowChange) -> None:
        ROW_CHANGE_TOTAL.labels(change.table, change.op).inc()
        for tables, listener in list(self._listeners.values()):
            if change.table not in tables:
                continue
            try:
                listener(change)
            except Exception:  # noqa: BLE001
                logger.exception("row_change_listener_failed", table=change.table, op=change.op)


HUB = ChangeHub()


class Debouncer:
    """
    Coalesce bursts of triggers into a single call once `delay` seconds pass without a new trigger.

    A trigger only resets the timer; an action that already started runs to completion.
    """

    def __init__(self, delay: float, action: Callable[[], Awaitable[None]]):
        self._delay = delay
        self._action = action
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._action())
        self._tasks.add(task)
        task.add_done_callback(self._done)

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("debounced_action_failed", error=repr(task.exception()))

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def aclose(self) -> None:
        self.cancel()
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
