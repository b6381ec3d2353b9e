"""Wallet client — wallets, accounts, balances, history, wallet events."""

from __future__ import annotations

from typing import Any

from bclient.client import SocketClient
from bclient.config import ClientConfig
from bclient.events import EventDispatcher, Listener
from bclient.types import AccountInfo, AddressInfo, Balance, WalletInfo, WalletTx

WALLET_EVENTS = ("tx", "confirmed", "unconfirmed", "conflict", "balance", "address")


def wallet_room(id: str) -> str:
    return f"wallet.{id}"


class WalletClient(SocketClient):
    """Client for the wallet service's HTTP API and socket.

    Pass ``id`` (and ``token``) to have :meth:`open` join that wallet's room
    and :meth:`close` leave it; :attr:`primary` is then the handle for it.
    Other wallets are reached through :meth:`wallet`.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        id: str | None = None,
        headers: dict[str, str] | None = None,
        **options: Any,
    ) -> None:
        super().__init__(config, headers=headers, **options)
        self.id = id
        self.primary: Wallet | None = self.wallet(id, self.config.token) if id is not None else None

    @classmethod
    def _default_config(cls, **options: Any) -> ClientConfig:
        return ClientConfig.for_wallet(**options)

    async def _on_open(self) -> None:
        if self.primary is not None:
            await self.primary.open()

    async def _on_close(self) -> None:
        if self.primary is not None:
            await self.primary.close()

    def wallet(self, id: str, token: str | None = None) -> "Wallet":
        """Handle for wallet *id*. Call :meth:`Wallet.open` to receive its events."""
        return Wallet(self, id, token)

    # -- HTTP ----------------------------------------------------------------

    async def get_wallets(self) -> list[str]:
        return await self.get("/wallet")

    async def create_wallet(self, id: str, **options: Any) -> WalletInfo:
        return await self.put("/wallet/{id}", {"id": id, **options})

    async def rescan(self, height: int) -> dict[str, Any]:
        """Rescan every wallet from *height* (admin)."""
        return await self.post("/rescan", {"height": height})


class Wallet:
    """One wallet on a :class:`WalletClient`.

    :meth:`open` joins room ``wallet.{id}``, presenting the wallet token so
    the server can authorize it, and starts re-emitting the client's wallet
    events whose first argument is this wallet's id (with that argument
    stripped). :meth:`close` reverses both.
    """

    def __init__(self, client: WalletClient, id: str, token: str | None = None) -> None:
        self.client = client
        self.id = id
        self.token = token
        self.events = EventDispatcher()
        self._forwarders: dict[str, Listener] = {}

    @property
    def room(self) -> str:
        return wallet_room(self.id)

    async def open(self) -> None:
        if not self._forwarders:
            for event in WALLET_EVENTS:
                forwarder = self._forwarder(event)
                self._forwarders[event] = forwarder
                self.client.on(event, forwarder)
        await self.client.join(self.room, self.token)

    async def close(self) -> None:
        await self.client.leave(self.room)
        for event, forwarder in self._forwarders.items():
            self.client.off(event, forwarder)
        self._forwarders.clear()

    def on(self, event: str, listener: Listener) -> None:
        self.events.on(event, listener)

    def off(self, event: str, listener: Listener) -> bool:
        return self.events.off(event, listener)

    def _forwarder(self, event: str) -> Listener:
        def forward(*args: Any) -> None:
            if args and args[0] == self.id:
                self.events.emit(event, *args[1:])

        return forward

    # -- HTTP ----------------------------------------------------------------

    def _params(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        out = {"id": self.id, **(params or {})}
        if self.token is not None:
            out["token"] = self.token
        return out

    async def get_info(self, *, details: bool = False) -> WalletInfo | None:
        return await self.client.get("/wallet/{id}", self._params({"details": details or None}))

    async def get_accounts(self) -> list[str]:
        return await self.client.get("/wallet/{id}/account", self._params())

    async def get_account(self, account: str) -> AccountInfo | None:
        return await self.client.get("/wallet/{id}/account/{account}", self._params({"account": account}))

    async def get_balance(self, account: str | None = None) -> Balance:
        return await self.client.get("/wallet/{id}/balance", self._params({"account": account}))

    async def get_history(self, account: str | None = None) -> list[WalletTx]:
        return await self.client.get("/wallet/{id}/tx/history", self._params({"account": account}))

    async def get_pending(self, account: str | None = None) -> list[WalletTx]:
        return await self.client.get("/wallet/{id}/tx/unconfirmed", self._params({"account": account}))

    async def get_coins(self, account: str | None = None) -> list[dict[str, Any]]:
        return await self.client.get("/wallet/{id}/coin", self._params({"account": account}))

    async def get_tx(self, hash: str) -> WalletTx | None:
        return await self.client.get("/wallet/{id}/tx/{hash}", self._params({"hash": hash}))

    async def create_address(self, account: str | None = None) -> AddressInfo:
        return await self.client.post("/wallet/{id}/address", self._params({"account": account}))

    async def send(self, **options: Any) -> WalletTx:
        """Create, sign and broadcast a transaction (``outputs``, ``rate``, ...)."""
        return await self.client.post("/wallet/{id}/send", self._params(options))
