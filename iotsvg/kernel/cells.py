"""
IoT SVG Kernel — Reactive Cells

A ValueCell holds one current value plus the subscribers that want to hear
about changes. Cells are owned by a single runtime instance; there is no
process-wide registry.

Subscribers are called synchronously, in subscription order, on every
next(). After complete() the cell is closed: next() is ignored and every
subscriber and async stream is released.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Callable

_DONE = object()


class ValueCell:
    """Observable mutable value (latest value + subscriber list)."""

    def __init__(self, value: Any = None) -> None:
        self._value = value
        self._subscribers: list[Callable[[Any], None]] = []
        self._queues: list[asyncio.Queue] = []
        self._closed = False

    @property
    def value(self) -> Any:
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        if self._closed:
            return lambda: None
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def reset(self, value: Any) -> None:
        """Replace the value without notifying anyone."""
        if not self._closed:
            self._value = value

    def next(self, value: Any) -> None:
        """Store value and notify every subscriber. Ignored once closed."""
        if self._closed:
            return
        self._value = value
        for queue in self._queues:
            queue.put_nowait(value)
        for callback in list(self._subscribers):
            callback(value)

    def complete(self) -> None:
        """Close the cell and release subscribers and streams."""
        if self._closed:
            return
        self._closed = True
        self._subscribers.clear()
        for queue in self._queues:
            queue.put_nowait(_DONE)
        self._queues.clear()

    async def changes(self) -> AsyncIterator[Any]:
        """
        Async stream of the cell: the current value first, then every
        subsequent next(). Ends when the cell completes.
        """
        if self._closed:
            return
        queue: asyncio.Queue = asyncio.Queue()
        queue.put_nowait(self._value)
        self._queues.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    return
                yield item
        finally:
            if queue in self._queues:
                self._queues.remove(queue)
