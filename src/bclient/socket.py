"""Persistent, authenticated, auto-reconnecting socket channel.

One :class:`SocketChannel` owns one websocket to the server at a time. It is
the only writer of the connection state and of room membership. Every
transition runs on the event loop, either inside the channel's run task or
inside :meth:`SocketChannel.close`, so no two transitions can interleave.

Outbound application messages sent while the channel is not ``ready`` are
held in a bounded FIFO queue and flushed right after the room joins are
replayed. Room joins themselves are never queued: membership is the source
of truth and is re-sent on every transition into ``ready``.
"""

from __future__ import annotations

import asyncio
import base64
import enum
import itertools
import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from bclient.backoff import Backoff
from bclient.config import ClientConfig
from bclient.events import EventDispatcher
from bclient.exceptions import AuthError, ConnectionLost, QueueOverflow, Timeout, TransportError

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING, ConnectionState.CLOSED}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.RECONNECTING, ConnectionState.CLOSED}
    ),
    ConnectionState.CONNECTED: frozenset(
        {ConnectionState.AUTHENTICATING, ConnectionState.RECONNECTING, ConnectionState.CLOSED}
    ),
    ConnectionState.AUTHENTICATING: frozenset(
        {ConnectionState.READY, ConnectionState.RECONNECTING, ConnectionState.CLOSED}
    ),
    ConnectionState.READY: frozenset({ConnectionState.RECONNECTING, ConnectionState.CLOSED}),
    ConnectionState.RECONNECTING: frozenset({ConnectionState.CONNECTING, ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}

_CONNECT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)

StateListener = Callable[[ConnectionState, ConnectionState], None]
MessageHandler = Callable[[dict[str, Any]], None]
DropCallback = Callable[[Exception], None]


@dataclass
class _Outbound:
    payload: dict[str, Any]
    key: Any = None
    on_drop: DropCallback | None = None


class SocketChannel:
    """Single logical connection to the node or wallet socket endpoint."""

    def __init__(
        self,
        config: ClientConfig,
        events: EventDispatcher | None = None,
        *,
        backoff: Backoff | None = None,
    ) -> None:
        self.config = config
        self.events = events or EventDispatcher()
        self.backoff = backoff or Backoff(
            config.reconnect_initial,
            config.reconnect_max,
            factor=config.reconnect_factor,
            jitter=config.reconnect_jitter,
        )
        self.message_handler: MessageHandler | None = None
        self._state = ConnectionState.DISCONNECTED
        self._state_listeners: list[StateListener] = []
        self._rooms: dict[str, str | None] = {}
        self._queue: deque[_Outbound] = deque()
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._ready = asyncio.Event()
        self._send_lock = asyncio.Lock()
        self._auth_ids = itertools.count(1)

    # -- Observers -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def rooms(self) -> frozenset[str]:
        return frozenset(self._rooms)

    @property
    def queued(self) -> int:
        return len(self._queue)

    def watch_state(self, listener: StateListener) -> None:
        """Call ``listener(old, new)`` synchronously on every transition."""
        self._state_listeners.append(listener)

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        """Start connecting in the background. Returns immediately."""
        if self._state is ConnectionState.CLOSED:
            raise ConnectionLost("Socket channel is closed.")
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="bclient-socket")

    async def wait_ready(self, timeout: float | None = None) -> None:
        if self._state is ConnectionState.CLOSED:
            raise ConnectionLost("Socket channel is closed.")
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            raise Timeout(f"Socket not ready after {timeout}s ({self._state.value}).") from None
        if self._state is ConnectionState.CLOSED:
            raise ConnectionLost("Socket channel closed while waiting for ready.")

    async def close(self) -> None:
        """Stop the channel for good. ``closed`` is terminal."""
        if self._state is ConnectionState.CLOSED:
            return
        was_ready = self._state is ConnectionState.READY
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        self._set_state(ConnectionState.CLOSED)
        while self._queue:
            entry = self._queue.popleft()
            if entry.on_drop is not None:
                entry.on_drop(ConnectionLost("Socket channel closed before the message was sent."))
        # Wake wait_ready() callers so they observe the closed state.
        self._ready.set()
        if was_ready:
            self.events.emit("disconnect")
        logger.info("Socket channel to %s closed", self.config.socket_url)

    # -- Rooms ---------------------------------------------------------------

    async def join(self, room: str, token: str | None = None) -> None:
        """Add *room* to membership, sending the join now if ready."""
        self._check_open()
        self._rooms[room] = token
        if self.is_ready:
            await self._send_now(_join_message(room, token))

    async def leave(self, room: str) -> None:
        # A closed channel has no membership left to give up.
        if self._rooms.pop(room, _MISSING) is _MISSING or self._state is ConnectionState.CLOSED:
            return
        if self.is_ready:
            await self._send_now({"type": "leave", "room": room})

    # -- Messages ------------------------------------------------------------

    async def send(
        self,
        payload: dict[str, Any],
        *,
        key: Any = None,
        on_drop: DropCallback | None = None,
    ) -> None:
        """Send *payload* now if ready, otherwise queue it.

        *key* identifies the entry for :meth:`discard`. *on_drop* is invoked
        with the reason if the message is dropped before it is written.
        """
        self._check_open()
        entry = _Outbound(payload, key, on_drop)
        if self.is_ready and await self._send_now(payload):
            return
        if not self.is_ready:
            self._enqueue(entry)

    def discard(self, key: Any) -> bool:
        """Remove the queued message registered under *key*, if still queued."""
        for entry in self._queue:
            if entry.key == key:
                self._queue.remove(entry)
                return True
        return False

    def _enqueue(self, entry: _Outbound) -> None:
        self._queue.append(entry)
        if len(self._queue) > self.config.queue_size:
            dropped = self._queue.popleft()
            logger.warning(
                "Outbound queue full (%d), dropping oldest message %r",
                self.config.queue_size,
                dropped.payload.get("method", dropped.payload),
            )
            if dropped.on_drop is not None:
                dropped.on_drop(QueueOverflow(f"Outbound queue full ({self.config.queue_size} messages)."))

    async def _send_now(self, payload: dict[str, Any]) -> bool:
        async with self._send_lock:
            ws = self._ws
            if not self.is_ready or ws is None:
                return False
            return await self._transmit(ws, payload)

    async def _transmit(self, ws: ClientConnection, payload: dict[str, Any]) -> bool:
        try:
            await ws.send(json.dumps(payload))
        except ConnectionClosed:
            logger.debug("Connection closed while sending %r", payload)
            return False
        logger.debug("-> %s", payload)
        return True

    def _check_open(self) -> None:
        if self._state is ConnectionState.CLOSED:
            raise ConnectionLost("Socket channel is closed.")

    # -- State machine -------------------------------------------------------

    def _set_state(self, new: ConnectionState) -> None:
        old = self._state
        if new is old:
            return
        if new not in _TRANSITIONS[old]:
            raise RuntimeError(f"Invalid socket state transition {old.value} -> {new.value}")
        self._state = new
        if new is ConnectionState.READY:
            self._ready.set()
        else:
            self._ready.clear()
        logger.debug("Socket state %s -> %s", old.value, new.value)
        for listener in list(self._state_listeners):
            listener(old, new)

    async def _run(self) -> None:
        url = self.config.socket_url
        while True:
            self._set_state(ConnectionState.CONNECTING)
            try:
                ws = await connect(
                    url,
                    additional_headers=self._headers(),
                    open_timeout=self.config.connect_timeout,
                )
            except _CONNECT_ERRORS as exc:
                self._report(TransportError(f"Could not connect to {url}: {exc}"))
            else:
                try:
                    await self._session(ws)
                finally:
                    self._ws = None
                    await ws.close()
            self._set_state(ConnectionState.RECONNECTING)
            delay = self.backoff.next_delay()
            logger.warning(
                "Socket to %s lost, reconnecting in %.2fs (attempt %d)", url, delay, self.backoff.attempts
            )
            await asyncio.sleep(delay)

    async def _session(self, ws: ClientConnection) -> None:
        self._ws = ws
        self._set_state(ConnectionState.CONNECTED)
        self._set_state(ConnectionState.AUTHENTICATING)
        try:
            await self._authenticate(ws)
        except AuthError as exc:
            self._lost()
            self._report(exc)
            return
        except (ConnectionClosed, asyncio.TimeoutError) as exc:
            self._lost()
            self._report(TransportError(f"Handshake with {self.config.socket_url} failed: {exc!r}"))
            return

        # Holding the send lock keeps callers' sends behind the replay.
        async with self._send_lock:
            self._set_state(ConnectionState.READY)
            self.backoff.reset()
            logger.info("Socket connected to %s", self.config.socket_url)
            self.events.emit("connect")
            await self._replay(ws)

        try:
            async for raw in ws:
                self._deliver(raw)
        except ConnectionClosed as exc:
            logger.debug("Socket closed: %r", exc)
        self._lost()
        self.events.emit("disconnect")

    def _lost(self) -> None:
        # Runs before any await; sends from here on are queued.
        self._ws = None
        self._set_state(ConnectionState.RECONNECTING)

    async def _authenticate(self, ws: ClientConnection) -> None:
        if not self.config.api_key:
            return
        auth_id = f"auth:{next(self._auth_ids)}"
        await ws.send(json.dumps({"id": auth_id, "method": "auth", "params": [self.config.api_key]}))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.connect_timeout
        while True:
            raw = await asyncio.wait_for(ws.recv(), max(0.0, deadline - loop.time()))
            msg = _decode(raw)
            if msg is None or msg.get("id") != auth_id:
                # Anything else the server sends first keeps its place in line.
                if msg is not None:
                    self._dispatch(msg)
                continue
            error = msg.get("error")
            if error:
                message = error.get("message") if isinstance(error, dict) else str(error)
                raise AuthError(message or "Authentication rejected.", details=error)
            return

    async def _replay(self, ws: ClientConnection) -> None:
        for room, token in list(self._rooms.items()):
            if not await self._transmit(ws, _join_message(room, token)):
                return
        while self._queue:
            entry = self._queue[0]
            if not await self._transmit(ws, entry.payload):
                return
            # The head may have been discarded while the write was pending.
            if self._queue and self._queue[0] is entry:
                self._queue.popleft()

    def _deliver(self, raw: str | bytes) -> None:
        msg = _decode(raw)
        if msg is not None:
            self._dispatch(msg)

    def _dispatch(self, msg: dict[str, Any]) -> None:
        logger.debug("<- %s", msg)
        if self.message_handler is None:
            return
        try:
            self.message_handler(msg)
        except Exception:
            logger.exception("Failed to handle inbound message %r", msg)

    def _report(self, exc: Exception) -> None:
        logger.warning("%s", exc)
        self.events.emit("error", exc)

    def _headers(self) -> dict[str, str]:
        if not self.config.api_key:
            return {}
        creds = base64.b64encode(f"{self.config.api_key}:".encode()).decode("ascii")
        return {"Authorization": f"Basic {creds}"}


_MISSING = object()


def _join_message(room: str, token: str | None) -> dict[str, Any]:
    msg: dict[str, Any] = {"type": "join", "room": room}
    if token is not None:
        msg["token"] = token
    return msg


def _decode(raw: str | bytes) -> dict[str, Any] | None:
    try:
        msg = json.loads(raw)
    except ValueError:
        logger.warning("Discarding malformed socket message: %r", raw[:200])
        return None
    if not isinstance(msg, dict):
        logger.warning("Discarding non-object socket message: %r", msg)
        return None
    return msg
