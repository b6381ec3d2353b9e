"""Shared base for the node and wallet clients: HTTP + socket + events."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from bclient.config import ClientConfig
from bclient.correlator import CallCorrelator, PendingCall
from bclient.events import EventDispatcher, Listener
from bclient.http import AsyncHttpClient
from bclient.socket import ConnectionState, SocketChannel

logger = logging.getLogger(__name__)


class SocketClient:
    """One HTTP executor and one socket channel against a single server.

    Stateless reads and writes go over HTTP. :meth:`call` goes over the
    socket and waits for the tagged reply. Server-pushed events are delivered
    to listeners registered with :meth:`on`, together with the ``connect``,
    ``disconnect`` and ``error`` lifecycle events.

    Usage::

        async with NodeClient(network="regtest") as client:
            client.on("block connect", handle_block)
            await client.watch_chain()
            info = await client.get_info()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        headers: dict[str, str] | None = None,
        **options: Any,
    ) -> None:
        if config is None:
            config = self._default_config(**options)
        elif options:
            config = config.with_options(**options)
        self.config = config
        self.http = AsyncHttpClient(config, headers=headers)
        self.events = EventDispatcher()
        self.channel = SocketChannel(config, self.events)
        self.correlator = CallCorrelator(self.channel, timeout=config.timeout)
        self.channel.message_handler = self._handle_message

    @classmethod
    def _default_config(cls, **options: Any) -> ClientConfig:
        return ClientConfig(**options)

    # -- Lifecycle -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.channel.state

    @property
    def rooms(self) -> frozenset[str]:
        return self.channel.rooms

    async def open(self, *, wait: bool = True) -> None:
        """Start the socket channel.

        With *wait*, block until the channel is ready. If it is not ready
        after ``config.connect_timeout`` the client is closed and ``Timeout``
        is raised. Without *wait* the channel keeps reconnecting in the
        background until :meth:`close`.
        """
        await self.channel.open()
        try:
            await self._on_open()
            if wait:
                await self.channel.wait_ready(self.config.connect_timeout)
        except BaseException:
            await self.close()
            raise

    async def close(self) -> None:
        await self._on_close()
        await self.channel.close()
        await self.http.aclose()

    async def _on_open(self) -> None:
        pass

    async def _on_close(self) -> None:
        pass

    async def __aenter__(self) -> "SocketClient":
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # -- Events --------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> None:
        self.events.on(event, listener)

    def once(self, event: str, listener: Listener) -> None:
        self.events.once(event, listener)

    def off(self, event: str, listener: Listener) -> bool:
        return self.events.off(event, listener)

    # -- Socket --------------------------------------------------------------

    async def join(self, room: str, token: str | None = None) -> None:
        await self.channel.join(room, token)

    async def leave(self, room: str) -> None:
        await self.channel.leave(room)

    async def call(self, method: str, *params: Any, timeout: float | None = None) -> Any:
        """Correlated socket call. Raises on error, timeout or disconnect."""
        return await self.correlator.call(method, params, timeout=timeout)

    async def submit(
        self, method: str, params: Iterable[Any] = (), *, timeout: float | None = None
    ) -> PendingCall:
        """Like :meth:`call` but returns the awaitable handle for :meth:`cancel`."""
        return await self.correlator.submit(method, params, timeout=timeout)

    def cancel(self, call: PendingCall | int) -> bool:
        return self.correlator.cancel(call.id if isinstance(call, PendingCall) else call)

    def _handle_message(self, msg: dict[str, Any]) -> None:
        if "id" in msg and ("result" in msg or "error" in msg):
            if self.correlator.handle_response(msg):
                return
            if "event" not in msg:
                logger.debug("Dropping reply for unknown or settled call %r", msg.get("id"))
                return
        event = msg.get("event")
        if isinstance(event, str):
            args = msg.get("args") or []
            if not isinstance(args, list):
                args = [args]
            self.events.emit(event, *args)
            return
        logger.debug("Ignoring unrecognised socket message %r", msg)

    # -- HTTP ----------------------------------------------------------------

    async def request(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.http.request(method, path, params)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.http.get(path, params)

    async def post(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.http.post(path, params)

    async def put(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.http.put(path, params)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.http.delete(path, params)

    async def execute(self, method: str, params: list[Any] | None = None) -> Any:
        """JSON-RPC over HTTP."""
        return await self.http.execute(method, params)
