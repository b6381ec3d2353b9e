"""Tests for the socket channel against a fake node socket server."""

from __future__ import annotations

from typing import Any

import pytest

from bclient.config import ClientConfig
from bclient.events import EventDispatcher
from bclient.exceptions import AuthError, ConnectionLost, Timeout, TransportError
from bclient.socket import ConnectionState, SocketChannel
from tests.conftest import FakeSocketServer, basic_auth, wait_until

pytestmark = pytest.mark.asyncio


def _recorder(channel: SocketChannel) -> list[ConnectionState]:
    states: list[ConnectionState] = []
    channel.watch_state(lambda old, new: states.append(new))
    return states


class TestSocketChannel:
    async def test_open_reaches_ready(self, socket_config: ClientConfig) -> None:
        channel = SocketChannel(socket_config)
        states = _recorder(channel)
        await channel.open()
        await channel.wait_ready(2.0)
        assert channel.state is ConnectionState.READY
        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.AUTHENTICATING,
            ConnectionState.READY,
        ]
        await channel.close()
        assert states[-1] is ConnectionState.CLOSED

    async def test_auth_handshake(self, socket_server: FakeSocketServer, socket_config: ClientConfig) -> None:
        socket_server.api_key = "secret"
        channel = SocketChannel(socket_config.with_options(api_key="secret"))
        await channel.open()
        await channel.wait_ready(2.0)
        first = socket_server.current[0]
        assert first["method"] == "auth"
        assert first["params"] == ["secret"]
        assert socket_server.headers[0].get("Authorization") == basic_auth("secret")
        await channel.close()

    async def test_auth_rejected_keeps_retrying(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        socket_server.api_key = "right"
        events = EventDispatcher()
        errors: list[Exception] = []
        events.on("error", errors.append)
        channel = SocketChannel(socket_config.with_options(api_key="wrong"), events)
        await channel.open()
        await wait_until(lambda: socket_server.connection_count >= 2)
        assert any(isinstance(exc, AuthError) for exc in errors)
        assert channel.state is not ConnectionState.READY
        await channel.close()

    async def test_connect_failure_reports_transport_error(self, fast_options: dict[str, Any]) -> None:
        # Nothing listens on port 1.
        events = EventDispatcher()
        errors: list[Exception] = []
        events.on("error", errors.append)
        channel = SocketChannel(ClientConfig(host="127.0.0.1", port=1, **fast_options), events)
        await channel.open()
        await wait_until(lambda: len(errors) >= 2)
        assert all(isinstance(exc, TransportError) for exc in errors)
        with pytest.raises(Timeout):
            await channel.wait_ready(0.05)
        await channel.close()

    async def test_join_while_ready_is_sent(self, socket_server: FakeSocketServer, socket_config: ClientConfig) -> None:
        channel = SocketChannel(socket_config)
        await channel.open()
        await channel.wait_ready(2.0)
        await channel.join("chain")
        await channel.join("wallet.primary", "tok")
        await wait_until(lambda: len(socket_server.rooms[0]) == 2)
        assert socket_server.rooms[0] == {"chain": None, "wallet.primary": "tok"}
        await channel.leave("chain")
        await wait_until(lambda: "chain" not in socket_server.rooms[0])
        assert channel.rooms == {"wallet.primary"}
        await channel.close()

    async def test_membership_before_ready_is_applied_on_ready(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        channel = SocketChannel(socket_config)
        await channel.join("chain")
        await channel.join("mempool")
        await channel.leave("mempool")
        await channel.open()
        await channel.wait_ready(2.0)
        await wait_until(lambda: socket_server.connection_count == 1 and len(socket_server.current) >= 1)
        assert socket_server.current == [{"type": "join", "room": "chain"}]
        await channel.close()

    async def test_rejoins_rooms_after_reconnect(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        channel = SocketChannel(socket_config)
        await channel.open()
        await channel.wait_ready(2.0)
        await channel.join("wallet.primary")
        await wait_until(lambda: "wallet.primary" in socket_server.rooms[0])
        before = channel.rooms

        await socket_server.drop()
        await wait_until(lambda: socket_server.connection_count == 2 and channel.is_ready)
        await wait_until(lambda: len(socket_server.current) >= 1)

        assert socket_server.current[0] == {"type": "join", "room": "wallet.primary"}
        assert socket_server.rooms[1] == {"wallet.primary": None}
        assert channel.rooms == before
        await channel.close()

    async def test_reconnect_cycle_states_and_events(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        events = EventDispatcher()
        seen: list[str] = []
        events.on("connect", lambda: seen.append("connect"))
        events.on("disconnect", lambda: seen.append("disconnect"))
        channel = SocketChannel(socket_config, events)
        states = _recorder(channel)
        await channel.open()
        await channel.wait_ready(2.0)
        await socket_server.drop()
        await wait_until(lambda: seen.count("connect") == 2)
        assert seen == ["connect", "disconnect", "connect"]
        assert ConnectionState.RECONNECTING in states
        assert channel.backoff.attempts == 0
        await channel.close()
        assert seen[-1] == "disconnect"

    async def test_disconnect_emitted_after_leaving_ready(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        events = EventDispatcher()
        channel = SocketChannel(socket_config, events)
        seen: list[ConnectionState] = []
        events.on("disconnect", lambda: seen.append(channel.state))
        await channel.open()
        await channel.wait_ready(2.0)
        await socket_server.drop()
        await wait_until(lambda: len(seen) == 1)
        assert seen == [ConnectionState.RECONNECTING]
        await channel.close()

    async def test_queued_messages_flush_after_joins(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        channel = SocketChannel(socket_config)
        await channel.send({"id": "x1", "method": "noop", "params": []})
        await channel.join("chain")
        await channel.send({"id": "x2", "method": "noop", "params": []})
        assert channel.queued == 2
        socket_server.silent.add("noop")
        await channel.open()
        await wait_until(lambda: socket_server.connection_count == 1 and len(socket_server.current) == 3)
        assert [m.get("room") or m.get("id") for m in socket_server.current] == ["chain", "x1", "x2"]
        assert channel.queued == 0
        await channel.close()

    async def test_inbound_messages_in_order(
        self, socket_server: FakeSocketServer, socket_config: ClientConfig
    ) -> None:
        channel = SocketChannel(socket_config)
        received: list[dict[str, Any]] = []
        channel.message_handler = received.append
        await channel.open()
        await channel.wait_ready(2.0)
        await socket_server.push("block connect", "entry1")
        await socket_server.send_raw({"id": 7, "result": True})
        await socket_server.push("tx", "tx1")
        await wait_until(lambda: len(received) == 3)
        assert received == [
            {"event": "block connect", "args": ["entry1"]},
            {"id": 7, "result": True},
            {"event": "tx", "args": ["tx1"]},
        ]
        await channel.close()

    async def test_close_is_terminal(self, socket_server: FakeSocketServer, socket_config: ClientConfig) -> None:
        channel = SocketChannel(socket_config)
        await channel.open()
        await channel.wait_ready(2.0)
        await channel.close()
        assert channel.state is ConnectionState.CLOSED
        with pytest.raises(ConnectionLost):
            await channel.open()
        with pytest.raises(ConnectionLost):
            await channel.join("chain")
        with pytest.raises(ConnectionLost):
            await channel.send({"id": 1, "method": "get tip", "params": []})
        await channel.close()
        assert socket_server.connection_count == 1
