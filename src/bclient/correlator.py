"""Request/response correlation over the socket channel."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Generator, Iterable

from bclient.config import DEFAULT_TIMEOUT
from bclient.exceptions import BClientError, Cancelled, ConnectionLost, RPCError, Timeout
from bclient.socket import ConnectionState, SocketChannel

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    """A correlated call awaiting its reply. Awaiting it yields the result."""

    id: int
    method: str
    created_at: float
    timeout: float
    future: asyncio.Future[Any] = field(repr=False)
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def done(self) -> bool:
        return self.future.done()

    def __await__(self) -> Generator[Any, None, Any]:
        return self.future.__await__()


class CallCorrelator:
    """Tags outgoing calls with an id and settles them from tagged replies.

    Every call ends exactly once: with its result, or with ``RPCError``,
    ``Timeout``, ``ConnectionLost``, ``QueueOverflow`` or ``Cancelled``. The
    entry is popped from the table before the outcome is applied, so a reply
    that arrives after a timeout or cancel is ignored.
    """

    def __init__(self, channel: SocketChannel, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._channel = channel
        self.timeout = timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingCall] = {}
        channel.watch_state(self._on_state)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._pending

    async def submit(
        self,
        method: str,
        params: Iterable[Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> PendingCall:
        """Send a call and return its handle without waiting for the reply."""
        loop = asyncio.get_running_loop()
        call_id = next(self._ids)
        timeout = self.timeout if timeout is None else timeout
        pending = PendingCall(call_id, method, loop.time(), timeout, loop.create_future())
        self._pending[call_id] = pending
        pending.timer = loop.call_later(timeout, self._expire, call_id)
        payload = {"id": call_id, "method": method, "params": list(params or [])}
        try:
            await self._channel.send(
                payload,
                key=call_id,
                on_drop=lambda exc: self._settle(call_id, error=exc),
            )
        except BClientError as exc:
            self._settle(call_id, error=exc)
        if call_id not in self._pending:
            # Settled while the write was pending; a failed write may have
            # queued the payload for the next session.
            self._channel.discard(call_id)
        return pending

    async def call(
        self,
        method: str,
        params: Iterable[Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        pending = await self.submit(method, params, timeout=timeout)
        try:
            return await pending
        except asyncio.CancelledError:
            self._forget(pending.id)
            raise

    def cancel(self, call_id: int) -> bool:
        """Reject a pending call with ``Cancelled``. The server is not told."""
        pending = self._pending.get(call_id)
        if pending is None:
            return False
        return self._settle(call_id, error=Cancelled(f"Call {pending.method!r} ({call_id}) cancelled."))

    def handle_response(self, msg: dict[str, Any]) -> bool:
        """Settle the call *msg* answers. Returns False if none is pending."""
        call_id = msg.get("id")
        if call_id not in self._pending:
            return False
        error = msg.get("error")
        if error is not None:
            if isinstance(error, dict):
                exc = RPCError(error.get("message", "Unknown error."), code=error.get("code"), details=error)
            else:
                exc = RPCError(str(error), details=error)
            return self._settle(call_id, error=exc)
        return self._settle(call_id, result=msg.get("result"))

    def fail_all(self, reason: str) -> int:
        failed = 0
        for call_id in list(self._pending):
            if self._settle(call_id, error=ConnectionLost(reason)):
                failed += 1
        return failed

    def _on_state(self, old: ConnectionState, new: ConnectionState) -> None:
        if new in (ConnectionState.RECONNECTING, ConnectionState.CLOSED) and self._pending:
            count = self.fail_all(f"Socket {new.value} while call was pending.")
            logger.warning("Rejected %d pending call(s): socket %s", count, new.value)

    def _expire(self, call_id: int) -> None:
        pending = self._pending.get(call_id)
        if pending is None:
            return
        self._settle(
            call_id,
            error=Timeout(f"Call {pending.method!r} ({call_id}) timed out after {pending.timeout:g}s."),
        )

    def _forget(self, call_id: int) -> None:
        pending = self._pending.pop(call_id, None)
        if pending is None:
            return
        if pending.timer is not None:
            pending.timer.cancel()
        self._channel.discard(call_id)

    def _settle(self, call_id: int, *, result: Any = None, error: Exception | None = None) -> bool:
        pending = self._pending.get(call_id)
        if pending is None:
            return False
        self._forget(call_id)
        if pending.future.done():
            return False
        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)
        return True
