#!/usr/bin/env python3
"""
Follow the chain and a wallet in real time with NodeClient and WalletClient.

Both clients reconnect on their own; chain and wallet subscriptions are
restored after every reconnect.
"""

from __future__ import annotations

import asyncio
import logging
import os

from bclient import NodeClient, WalletClient

NETWORK = os.environ.get("BCLIENT_NETWORK", "regtest")
API_KEY = os.environ.get("BCLIENT_API_KEY")
WALLET_ID = os.environ.get("BCLIENT_WALLET_ID", "primary")
WALLET_TOKEN = os.environ.get("BCLIENT_WALLET_TOKEN")


def log(section: str, msg: str) -> None:
    print(f"[{section}] {msg}")


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    node = NodeClient(network=NETWORK, api_key=API_KEY)
    wallet = WalletClient(network=NETWORK, api_key=API_KEY, id=WALLET_ID, token=WALLET_TOKEN)

    node.on("block connect", lambda entry, txs: log("chain", f"block connected ({len(txs)} txs)"))
    node.on("disconnect", lambda: log("node", "disconnected, reconnecting …"))
    node.on("error", lambda exc: log("node", f"error: {exc}"))

    async with node, wallet:
        tip = await node.get_tip()
        log("node", f"tip height={tip['height']}")
        await node.watch_chain()

        wallet.primary.on("tx", lambda details: log("wallet", f"tx {details['hash']}"))
        wallet.primary.on("balance", lambda balance: log("wallet", f"balance {balance['confirmed']}"))
        balance = await wallet.primary.get_balance()
        log("wallet", f"{WALLET_ID}: confirmed={balance['confirmed']}")

        try:
            while True:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
