"""Listener registry and synchronous event dispatch."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventDispatcher:
    """Ordered mapping of event name to listeners.

    Listeners run synchronously in registration order. A listener that raises
    is logged and skipped; the remaining listeners still run. A listener may
    return an awaitable, which is scheduled on the running loop.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Future[Any]] = set()

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def once(self, event: str, listener: Listener) -> None:
        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return listener(*args)

        wrapper.listener = listener  # type: ignore[attr-defined]
        self.on(event, wrapper)

    def off(self, event: str, listener: Listener) -> bool:
        """Remove the first registration of *listener*. Returns whether one was found."""
        listeners = self._listeners.get(event)
        if not listeners:
            return False
        for index, registered in enumerate(listeners):
            # once() registrations match the listener they wrap.
            if registered == listener or getattr(registered, "listener", None) == listener:
                del listeners[index]
                break
        else:
            return False
        if not listeners:
            del self._listeners[event]
        return True

    def listeners(self, event: str) -> list[Listener]:
        return list(self._listeners.get(event, ()))

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    def emit(self, event: str, *args: Any) -> int:
        """Deliver *args* to every listener of *event*. Returns the delivery count."""
        # Snapshot so listeners may (un)register during delivery.
        listeners = self.listeners(event)
        for listener in listeners:
            try:
                result = listener(*args)
            except Exception:
                logger.exception("Listener %r for event %r failed", listener, event)
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)
        return len(listeners)

    def _schedule(self, event: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(fut: asyncio.Future[Any]) -> None:
            self._tasks.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                logger.error("Async listener for event %r failed", event, exc_info=exc)

        task.add_done_callback(done)
