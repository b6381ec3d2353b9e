"""Tests for ClientConfig."""

import dataclasses

import pytest

from bclient.config import ClientConfig, Network


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.network is Network.MAIN
        assert config.port == 8332
        assert config.base_url == "http://127.0.0.1:8332"
        assert config.socket_url == "ws://127.0.0.1:8332/"

    @pytest.mark.parametrize(
        ("network", "node_port", "wallet_port"),
        [("main", 8332, 8334), ("testnet", 18332, 18334), ("regtest", 48332, 48334), ("simnet", 18556, 18558)],
    )
    def test_network_ports(self, network: str, node_port: int, wallet_port: int) -> None:
        assert ClientConfig(network=network).port == node_port
        assert ClientConfig.for_wallet(network=network).port == wallet_port

    def test_explicit_port_wins(self) -> None:
        assert ClientConfig.for_wallet(network="regtest", port=9999).port == 9999

    def test_immutable(self) -> None:
        config = ClientConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.host = "example.com"  # type: ignore[misc]

    def test_ssl_and_path(self) -> None:
        config = ClientConfig(host="node.example", port=443, ssl=True, path="api/")
        assert config.path == "/api"
        assert config.base_url == "https://node.example:443/api"
        assert config.socket_url == "wss://node.example:443/api"

    def test_ipv6_host(self) -> None:
        assert ClientConfig(host="::1").base_url == "http://[::1]:8332"

    def test_from_url(self) -> None:
        config = ClientConfig.from_url("https://:hunter2@10.0.0.5:18332/v1", network="testnet")
        assert config.host == "10.0.0.5"
        assert config.port == 18332
        assert config.ssl is True
        assert config.path == "/v1"
        assert config.api_key == "hunter2"
        assert config.network is Network.TESTNET

    def test_from_url_rejects_scheme(self) -> None:
        with pytest.raises(ValueError):
            ClientConfig.from_url("ftp://127.0.0.1")

    def test_with_options(self) -> None:
        config = ClientConfig().with_options(api_key="k", timeout=5.0)
        assert config.api_key == "k"
        assert config.timeout == 5.0

    @pytest.mark.parametrize(
        "options",
        [
            {"timeout": 0},
            {"queue_size": 0},
            {"reconnect_initial": 2.0, "reconnect_max": 1.0},
            {"reconnect_factor": 0.5},
        ],
    )
    def test_validation(self, options: dict) -> None:
        with pytest.raises(ValueError):
            ClientConfig(**options)
