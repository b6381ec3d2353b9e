"""Shared test fixtures — a mock HTTP server and a fake node socket server."""

from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, AsyncIterator, Callable

import pytest
import pytest_asyncio
from pytest_httpserver import HTTPServer
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from werkzeug import Response

from bclient.config import ClientConfig


@pytest.fixture()
def mock_server(httpserver: HTTPServer) -> HTTPServer:
    """Return the pytest-httpserver instance."""
    return httpserver


def json_response(data: Any, status: int = 200) -> Response:
    """Build a Werkzeug JSON response."""
    return Response(
        json.dumps(data),
        status=status,
        content_type="application/json",
    )


def basic_auth(api_key: str) -> str:
    return "Basic " + base64.b64encode(f"{api_key}:".encode()).decode()


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Poll *predicate* on the running loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class FakeSocketServer:
    """Minimal node socket endpoint speaking the client's JSON protocol.

    Answers ``auth`` against :attr:`api_key`, tracks room joins per
    connection, answers calls from :attr:`handlers` and records every
    message it receives, one list per connection in :attr:`sessions`.
    """

    def __init__(self) -> None:
        self.port = 0
        self.api_key: str | None = None
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.silent: set[str] = set()
        self.sessions: list[list[dict[str, Any]]] = []
        self.headers: list[Any] = []
        self.rooms: list[dict[str, str | None]] = []
        self._live: list[ServerConnection] = []

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/"

    @property
    def connection_count(self) -> int:
        return len(self.sessions)

    @property
    def current(self) -> list[dict[str, Any]]:
        return self.sessions[-1]

    async def handler(self, ws: ServerConnection) -> None:
        received: list[dict[str, Any]] = []
        rooms: dict[str, str | None] = {}
        self.sessions.append(received)
        self.rooms.append(rooms)
        self.headers.append(ws.request.headers)
        self._live.append(ws)
        try:
            async for raw in ws:
                msg = json.loads(raw)
                received.append(msg)
                await self._answer(ws, msg, rooms)
        except ConnectionClosed:
            pass
        finally:
            self._live.remove(ws)

    async def _answer(self, ws: ServerConnection, msg: dict[str, Any], rooms: dict[str, str | None]) -> None:
        kind = msg.get("type")
        if kind == "join":
            rooms[msg["room"]] = msg.get("token")
            return
        if kind == "leave":
            rooms.pop(msg["room"], None)
            return
        method = msg.get("method")
        if method is None or method in self.silent:
            return
        if method == "auth":
            if msg["params"] == [self.api_key]:
                await ws.send(json.dumps({"id": msg["id"], "result": None}))
            else:
                await ws.send(json.dumps({"id": msg["id"], "error": {"message": "Invalid API key."}}))
            return
        handler = self.handlers.get(method)
        if handler is None:
            reply = {"id": msg["id"], "error": {"message": f"Unknown method: {method}."}}
        else:
            try:
                reply = {"id": msg["id"], "result": handler(*msg.get("params", []))}
            except Exception as exc:
                reply = {"id": msg["id"], "error": {"message": str(exc)}}
        await ws.send(json.dumps(reply))

    async def push(self, event: str, *args: Any) -> None:
        for ws in list(self._live):
            await ws.send(json.dumps({"event": event, "args": list(args)}))

    async def send_raw(self, payload: dict[str, Any]) -> None:
        for ws in list(self._live):
            await ws.send(json.dumps(payload))

    async def drop(self) -> None:
        """Close every live connection from the server side."""
        for ws in list(self._live):
            await ws.close()


@pytest_asyncio.fixture()
async def socket_server() -> AsyncIterator[FakeSocketServer]:
    fake = FakeSocketServer()
    async with serve(fake.handler, "127.0.0.1", 0) as server:
        fake.port = server.sockets[0].getsockname()[1]
        yield fake


@pytest.fixture()
def fast_options() -> dict[str, Any]:
    """Config options that keep reconnect and call timeouts test-sized."""
    return {
        "timeout": 2.0,
        "connect_timeout": 2.0,
        "reconnect_initial": 0.01,
        "reconnect_max": 0.05,
    }


@pytest.fixture()
def socket_config(socket_server: FakeSocketServer, fast_options: dict[str, Any]) -> ClientConfig:
    return ClientConfig(host="127.0.0.1", port=socket_server.port, **fast_options)
