"""Type definitions mirroring the node and wallet JSON responses.

All types use ``TypedDict`` — the SDK returns raw dicts from the API, and
these types only provide editor auto-complete.
"""

from __future__ import annotations

from typing import Any, TypedDict


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------

class ChainInfo(TypedDict, total=False):
    height: int
    tip: str
    progress: float


class NodeInfo(TypedDict, total=False):
    version: str
    network: str
    chain: ChainInfo
    pool: dict[str, Any]
    mempool: dict[str, Any]
    time: dict[str, Any]
    memory: dict[str, Any]


class ChainEntry(TypedDict, total=False):
    hash: str
    version: int
    prevBlock: str
    merkleRoot: str
    time: int
    bits: int
    nonce: int
    height: int
    chainwork: str


class Input(TypedDict, total=False):
    prevout: dict[str, Any]
    script: str
    witness: str
    sequence: int
    coin: dict[str, Any] | None


class Output(TypedDict, total=False):
    value: int
    script: str
    address: str | None


class TxJSON(TypedDict, total=False):
    hash: str
    witnessHash: str
    fee: int
    rate: int
    mtime: int
    height: int
    block: str | None
    time: int
    index: int
    version: int
    inputs: list[Input]
    outputs: list[Output]
    locktime: int
    hex: str
    confirmations: int


class BlockJSON(TypedDict, total=False):
    hash: str
    height: int
    depth: int
    version: int
    prevBlock: str
    merkleRoot: str
    time: int
    bits: int
    nonce: int
    txs: list[TxJSON]


class CoinJSON(TypedDict, total=False):
    version: int
    height: int
    value: int
    script: str
    address: str | None
    coinbase: bool
    hash: str
    index: int


class FeeEstimate(TypedDict):
    rate: int


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------

class Balance(TypedDict, total=False):
    wid: int
    id: str
    account: int
    unconfirmed: int
    confirmed: int
    tx: int
    coin: int


class WalletInfo(TypedDict, total=False):
    network: str
    wid: int
    id: str
    watchOnly: bool
    accountDepth: int
    token: str
    tokenDepth: int
    state: dict[str, Any]
    balance: Balance


class AccountInfo(TypedDict, total=False):
    name: str
    initialized: bool
    witness: bool
    watchOnly: bool
    type: str
    m: int
    n: int
    accountIndex: int
    receiveDepth: int
    changeDepth: int
    receiveAddress: str
    changeAddress: str
    accountKey: str
    keys: list[str]
    balance: Balance


class AddressInfo(TypedDict, total=False):
    name: str
    account: int
    branch: int
    index: int
    witness: bool
    nested: bool
    publicKey: str
    script: str | None
    program: str | None
    type: str
    address: str


class WalletTx(TypedDict, total=False):
    hash: str
    height: int
    block: str | None
    time: int
    mtime: int
    date: str
    mdate: str
    size: int
    virtualSize: int
    fee: int
    rate: int
    confirmations: int
    inputs: list[dict[str, Any]]
    outputs: list[dict[str, Any]]
    tx: str
