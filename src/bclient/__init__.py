"""bclient — HTTP and socket clients for a full node and its wallet service."""

from typing import Any

from bclient.client import SocketClient
from bclient.config import ClientConfig, Network
from bclient.exceptions import (
    AuthError,
    BClientError,
    Cancelled,
    ConnectionLost,
    QueueOverflow,
    RequestFailed,
    RPCError,
    Timeout,
    TransportError,
)
from bclient.http import AsyncHttpClient, HttpClient
from bclient.node import NodeClient
from bclient.socket import ConnectionState
from bclient.wallet import Wallet, WalletClient


def node_client(**options: Any) -> NodeClient:
    return NodeClient(**options)


def wallet_client(**options: Any) -> WalletClient:
    return WalletClient(**options)


__all__ = [
    "NodeClient",
    "WalletClient",
    "Wallet",
    "SocketClient",
    "node_client",
    "wallet_client",
    "HttpClient",
    "AsyncHttpClient",
    "ClientConfig",
    "Network",
    "ConnectionState",
    "BClientError",
    "TransportError",
    "RequestFailed",
    "RPCError",
    "AuthError",
    "Timeout",
    "ConnectionLost",
    "QueueOverflow",
    "Cancelled",
]

__version__ = "0.1.0"
