"""Node client — chain, mempool, coins, transactions, chain events."""

from __future__ import annotations

import asyncio
import time
from typing import Any

from bclient.client import SocketClient
from bclient.exceptions import Timeout
from bclient.types import BlockJSON, ChainEntry, CoinJSON, FeeEstimate, NodeInfo, TxJSON

CHAIN_ROOM = "chain"
MEMPOOL_ROOM = "mempool"


class NodeClient(SocketClient):
    """Client for a full node's HTTP API and socket.

    Chain events (``block connect``, ``block disconnect``, ``chain reset``)
    arrive after :meth:`watch_chain`; mempool ``tx`` events after
    :meth:`watch_mempool`. Both subscriptions are room joins, so they are
    restored automatically after a reconnect.
    """

    # -- HTTP ----------------------------------------------------------------

    async def get_info(self) -> NodeInfo:
        return await self.get("/")

    async def get_mempool(self) -> list[str]:
        """Hashes of all transactions in the mempool."""
        return await self.get("/mempool")

    async def get_block(self, block: str | int) -> BlockJSON | None:
        """Block by hash or height. ``None`` if the node does not have it."""
        return await self.get("/block/{block}", {"block": block})

    async def get_tx(self, hash: str) -> TxJSON | None:
        return await self.get("/tx/{hash}", {"hash": hash})

    async def get_coin(self, hash: str, index: int) -> CoinJSON | None:
        return await self.get("/coin/{hash}/{index}", {"hash": hash, "index": index})

    async def get_coins_by_address(self, address: str) -> list[CoinJSON]:
        return await self.get("/coin/address/{address}", {"address": address})

    async def get_txs_by_address(self, address: str) -> list[TxJSON]:
        return await self.get("/tx/address/{address}", {"address": address})

    async def broadcast(self, tx: str) -> dict[str, Any]:
        """Relay a raw transaction (hex)."""
        return await self.post("/broadcast", {"tx": tx})

    async def estimate_fee(self, blocks: int | None = None) -> FeeEstimate:
        return await self.get("/fee", {"blocks": blocks})

    async def reset(self, height: int) -> dict[str, Any]:
        """Reset the chain to *height* (admin)."""
        return await self.post("/reset", {"height": height})

    async def wait_for_sync(
        self,
        *,
        interval: float = 2.0,
        timeout: float = 60.0,
    ) -> NodeInfo:
        """Poll :meth:`get_info` until chain sync progress reaches 1.

        Raises ``Timeout`` if *timeout* seconds elapse.
        """
        deadline = time.monotonic() + timeout
        while True:
            info = await self.get_info()
            if info.get("chain", {}).get("progress", 0) >= 1:
                return info
            if time.monotonic() >= deadline:
                raise Timeout(f"Node did not sync within {timeout}s")
            await asyncio.sleep(interval)

    # -- Socket --------------------------------------------------------------

    async def watch_chain(self) -> None:
        await self.join(CHAIN_ROOM)

    async def unwatch_chain(self) -> None:
        await self.leave(CHAIN_ROOM)

    async def watch_mempool(self) -> None:
        await self.join(MEMPOOL_ROOM)

    async def unwatch_mempool(self) -> None:
        await self.leave(MEMPOOL_ROOM)

    async def get_tip(self) -> ChainEntry:
        return await self.call("get tip")

    async def get_entry(self, block: str | int) -> ChainEntry | None:
        return await self.call("get entry", block)

    async def get_hashes(self, start: int = -1, end: int = -1) -> list[str]:
        return await self.call("get hashes", start, end)

    async def set_filter(self, filter: str) -> None:
        """Load a serialized bloom filter for this socket session."""
        await self.call("set filter", filter)

    async def add_filter(self, chunks: list[str]) -> None:
        await self.call("add filter", chunks)

    async def reset_filter(self) -> None:
        await self.call("reset filter")

    async def rescan(self, start: str | int) -> None:
        """Rescan the chain from *start* against the loaded filter."""
        await self.call("rescan", start)
