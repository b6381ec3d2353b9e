"""Low-level HTTP executor for the node and wallet APIs (sync + async)."""

from __future__ import annotations

import itertools
import logging
import re
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from bclient.config import ClientConfig
from bclient.exceptions import RequestFailed, RPCError, TransportError

logger = logging.getLogger(__name__)

_SLOT = re.compile(r"\{(\w+)\}")
_BODY_METHODS = frozenset({"POST", "PUT"})


def _expand_path(template: str, params: dict[str, Any] | None) -> tuple[str, dict[str, Any]]:
    """Fill ``{name}`` slots of *template* from *params*.

    Slot values are percent-escaped and removed from the returned params.
    """
    rest = {k: v for k, v in (params or {}).items() if v is not None}

    def fill(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in rest:
            raise ValueError(f"Missing value for path slot {name!r} in {template!r}")
        return quote(str(rest.pop(name)), safe="")

    return _SLOT.sub(fill, template), rest


def _build_url(base: str, path: str, params: dict[str, Any] | None = None) -> str:
    url = base.rstrip("/") + path
    if params:
        query = {k: _query_value(v) for k, v in params.items()}
        url += "?" + urlencode(query, doseq=True)
    return url


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _auth(config: ClientConfig) -> httpx.BasicAuth | None:
    if config.api_key:
        return httpx.BasicAuth(config.api_key, "")
    return None


def _prepare(method: str, path: str, params: dict[str, Any] | None) -> tuple[str, str, dict[str, Any] | None, Any]:
    method = method.upper()
    path, rest = _expand_path(path, params)
    if method in _BODY_METHODS:
        return method, path, None, rest
    return method, path, rest, None


def _handle_response(resp: httpx.Response) -> Any:
    """Map a response to its decoded value.

    404 yields ``None``: a missing block or transaction is an answer, not a
    failure.
    """
    if resp.status_code == 404:
        return None
    if resp.is_success:
        if not resp.content:
            return None
        return resp.json()
    msg: str | None = None
    code = None
    try:
        body = resp.json()
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            msg = body["error"].get("message")
            code = body["error"].get("code")
    except ValueError:
        pass
    if resp.status_code == 401:
        msg = msg or "Unauthorized (bad API key)."
    raise RequestFailed(resp.status_code, resp.text, message=msg, code=code)


def _rpc_result(body: Any) -> Any:
    if body is None:
        raise RPCError("No body for JSON-RPC response.")
    error = body.get("error")
    if error:
        raise RPCError(error.get("message", "Unknown RPC error."), code=error.get("code"), details=error)
    return body.get("result")


# ---------------------------------------------------------------------------
# Synchronous client
# ---------------------------------------------------------------------------

class HttpClient:
    """Synchronous HTTP executor wrapping ``httpx.Client``."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.base_url = self.config.base_url
        _headers: dict[str, str] = {"Accept": "application/json"}
        if headers:
            _headers.update(headers)
        self._client = httpx.Client(
            timeout=self.config.timeout,
            headers=_headers,
            auth=_auth(self.config),
            transport=transport,
        )
        self._rpc_ids = itertools.count(1)

    def request(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        method, path, query, body = _prepare(method, path, params)
        url = _build_url(self.base_url, path, query)
        logger.debug("%s %s", method, url)
        try:
            resp = self._client.request(method, url, json=body)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return _handle_response(resp)

    # -- HTTP verbs ----------------------------------------------------------

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params)

    def post(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("POST", path, params)

    def put(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("PUT", path, params)

    def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("DELETE", path, params)

    def execute(self, method: str, params: list[Any] | None = None) -> Any:
        """Run a JSON-RPC command against the node."""
        body = {"method": method, "params": params or [], "id": next(self._rpc_ids)}
        return _rpc_result(self.post("/", body))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Asynchronous client
# ---------------------------------------------------------------------------

class AsyncHttpClient:
    """Asynchronous HTTP executor wrapping ``httpx.AsyncClient``."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.base_url = self.config.base_url
        _headers: dict[str, str] = {"Accept": "application/json"}
        if headers:
            _headers.update(headers)
        self._client = httpx.AsyncClient(
            timeout=self.config.timeout,
            headers=_headers,
            auth=_auth(self.config),
            transport=transport,
        )
        self._rpc_ids = itertools.count(1)

    async def request(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        method, path, query, body = _prepare(method, path, params)
        url = _build_url(self.base_url, path, query)
        logger.debug("%s %s", method, url)
        try:
            resp = await self._client.request(method, url, json=body)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return _handle_response(resp)

    # -- HTTP verbs ----------------------------------------------------------

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params)

    async def post(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, params)

    async def put(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("PUT", path, params)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, params)

    async def execute(self, method: str, params: list[Any] | None = None) -> Any:
        body = {"method": method, "params": params or [], "id": next(self._rpc_ids)}
        return _rpc_result(await self.post("/", body))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
