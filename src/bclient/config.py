"""Connection parameters shared by the HTTP executor and the socket channel."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import urlsplit

DEFAULT_HOST = "127.0.0.1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_QUEUE_SIZE = 100
DEFAULT_RECONNECT_INITIAL = 0.5
DEFAULT_RECONNECT_MAX = 30.0
DEFAULT_RECONNECT_FACTOR = 2.0
DEFAULT_RECONNECT_JITTER = 0.25


class Network(str, enum.Enum):
    """Chains a node can run on. Each selects the default node/wallet ports."""

    MAIN = "main"
    TESTNET = "testnet"
    REGTEST = "regtest"
    SIMNET = "simnet"

    @property
    def node_port(self) -> int:
        return _PORTS[self][0]

    @property
    def wallet_port(self) -> int:
        return _PORTS[self][1]


_PORTS: dict[Network, tuple[int, int]] = {
    Network.MAIN: (8332, 8334),
    Network.TESTNET: (18332, 18334),
    Network.REGTEST: (48332, 48334),
    Network.SIMNET: (18556, 18558),
}


@dataclass(frozen=True)
class ClientConfig:
    """Immutable connection parameters, resolved once at construction.

    ``port`` defaults to the node port of ``network``; wallet clients build
    their config through :meth:`for_wallet`, which picks the wallet port.
    ``timeout`` is the HTTP timeout and the default deadline for correlated
    socket calls, in seconds.
    """

    network: Network = Network.MAIN
    host: str = DEFAULT_HOST
    port: int | None = None
    ssl: bool = False
    path: str = "/"
    api_key: str | None = None
    token: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    queue_size: int = DEFAULT_QUEUE_SIZE
    reconnect_initial: float = DEFAULT_RECONNECT_INITIAL
    reconnect_max: float = DEFAULT_RECONNECT_MAX
    reconnect_factor: float = DEFAULT_RECONNECT_FACTOR
    reconnect_jitter: float = DEFAULT_RECONNECT_JITTER

    def __post_init__(self) -> None:
        # Frozen: normalise through object.__setattr__.
        object.__setattr__(self, "network", Network(self.network))
        if self.port is None:
            object.__setattr__(self, "port", self.network.node_port)
        path = "/" + self.path.strip("/")
        object.__setattr__(self, "path", path)
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if self.reconnect_initial <= 0 or self.reconnect_max < self.reconnect_initial:
            raise ValueError("reconnect_max must be >= reconnect_initial > 0")
        if self.reconnect_factor < 1:
            raise ValueError("reconnect_factor must be >= 1")

    @classmethod
    def for_wallet(cls, **options: Any) -> "ClientConfig":
        """Like the constructor, but ``port`` defaults to the wallet port."""
        network = Network(options.get("network", Network.MAIN))
        if options.get("port") is None:
            options["port"] = network.wallet_port
        return cls(**options)

    @classmethod
    def from_url(cls, url: str, **options: Any) -> "ClientConfig":
        """Build a config from ``http(s)://[apikey@]host:port/path``."""
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https", "ws", "wss"):
            raise ValueError(f"Unsupported URL scheme: {parts.scheme!r}")
        if parts.hostname:
            options.setdefault("host", parts.hostname)
        if parts.port is not None:
            options.setdefault("port", parts.port)
        if parts.path:
            options.setdefault("path", parts.path)
        if parts.password or parts.username:
            options.setdefault("api_key", parts.password or parts.username)
        options.setdefault("ssl", parts.scheme in ("https", "wss"))
        return cls(**options)

    def with_options(self, **changes: Any) -> "ClientConfig":
        return replace(self, **changes)

    @property
    def _authority(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self._authority}{self.path.rstrip('/')}"

    @property
    def socket_url(self) -> str:
        scheme = "wss" if self.ssl else "ws"
        return f"{scheme}://{self._authority}{self.path}"
