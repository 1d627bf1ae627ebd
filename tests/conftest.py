from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp
import pytest
from yarl import URL

from lisk_dex_adapter.config import Settings
from lisk_dex_adapter.models import EndpointSet
from lisk_dex_adapter.service.client import FailoverClient
from lisk_dex_adapter.service.repository import ServiceRepository

PRIMARY = "http://primary.test"
FALLBACK_A = "http://fallback-a.test"
FALLBACK_B = "http://fallback-b.test"

Handler = Callable[[str, str, Optional[Dict[str, Any]], Optional[Dict[str, Any]]], Any]


def http_error(status: int, url: str = PRIMARY) -> aiohttp.ClientResponseError:
    info = aiohttp.RequestInfo(URL(url), "GET", None, URL(url))
    return aiohttp.ClientResponseError(info, (), status=status, message="error")


class FakeTransport:
    """Stands in for the HTTP layer: one handler or exception per base URL."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, str, Any, Any]] = []
        self.handlers: Dict[str, Any] = {}

    def route(self, base_url: str, handler: Any) -> None:
        self.handlers[base_url] = handler

    @property
    def attempted(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def send(
        self,
        base_url: str,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        self.calls.append((base_url, method, path, params, payload))
        handler = self.handlers.get(base_url)
        if handler is None:
            raise aiohttp.ClientConnectionError(f"Cannot connect to {base_url}")
        if isinstance(handler, BaseException):
            raise handler
        return handler(method, path, params, payload)


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport()

    async def fake_send(self, base_url, method, path, params=None, payload=None):  # noqa: ANN001
        return await fake.send(base_url, method, path, params, payload)

    monkeypatch.setattr(FailoverClient, "_send", fake_send)
    return fake


def _matches(value: Any, expected: str) -> bool:
    if isinstance(value, int) and ":" in expected:
        lo, hi = expected.split(":")
        return (lo == "" or value >= int(lo)) and (hi == "" or value <= int(hi))
    return str(value) == expected


def _sorted(records: List[Dict[str, Any]], sort: Optional[str], key_fn: Callable) -> List[Dict[str, Any]]:
    if sort is None:
        return records
    field, direction = sort.split(":")
    return sorted(records, key=lambda r: key_fn(r, field), reverse=direction == "desc")


class FakeIndex:
    """
    A small in-memory Lisk Service.

    Interval filters are inclusive on both ends like the real service.
    """

    def __init__(
        self,
        blocks: Optional[List[Dict[str, Any]]] = None,
        transactions: Optional[List[Dict[str, Any]]] = None,
        auth: Optional[Dict[str, Dict[str, Any]]] = None,
        post_response: Any = None,
    ) -> None:
        self.blocks = blocks or []
        self.transactions = transactions or []
        self.auth = auth or {}
        self.post_response = post_response
        self.posted: List[Dict[str, Any]] = []

    def __call__(self, method: str, path: str, params: Any, payload: Any) -> Any:
        params = params or {}
        if path == "/api/v3/blocks":
            return self._blocks(params)
        if path == "/api/v3/transactions" and method == "POST":
            self.posted.append(payload)
            return self.post_response
        if path == "/api/v3/transactions":
            return self._transactions(params)
        if path == "/api/v3/auth":
            record = self.auth.get(params["address"])
            if record is None:
                raise http_error(404)
            return {"data": record, "meta": {"address": params["address"]}}
        raise http_error(404)

    def _page(self, records: List[Dict[str, Any]], params: Dict[str, str]) -> Dict[str, Any]:
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 10))
        page = records[offset:offset + limit]
        return {"data": page, "meta": {"count": len(page), "offset": offset, "total": len(records)}}

    def _blocks(self, params: Dict[str, str]) -> Dict[str, Any]:
        records = [
            block for block in self.blocks
            if all(
                _matches(block[field], params[field])
                for field in ("height", "timestamp") if field in params
            )
        ]
        records = _sorted(records, params.get("sort"), lambda r, f: r[f])
        return self._page(records, params)

    def _transactions(self, params: Dict[str, str]) -> Dict[str, Any]:
        def field_value(tx: Dict[str, Any], name: str) -> Any:
            return {
                "senderAddress": tx["sender"]["address"],
                "recipientAddress": tx["params"]["recipientAddress"],
                "blockID": tx["block"]["id"],
                "timestamp": tx["block"]["timestamp"],
                "moduleCommand": tx["moduleCommand"],
            }[name]

        filters = ("senderAddress", "recipientAddress", "blockID", "timestamp", "moduleCommand")
        records = [
            tx for tx in self.transactions
            if all(_matches(field_value(tx, f), params[f]) for f in filters if f in params)
        ]
        records = _sorted(records, params.get("sort"), field_value)
        return self._page(records, params)


def make_block(height: int, timestamp: Optional[int] = None) -> Dict[str, Any]:
    return {
        "id": f"{height:064x}",
        "height": height,
        "timestamp": timestamp if timestamp is not None else 1700000000 + height * 10,
        "numberOfTransactions": height % 3,
        "generator": {"address": "lskgenerator"},
        "isFinal": True,
    }


def make_transaction(
    sender: str,
    recipient: str,
    nonce: int,
    timestamp: int,
    block_id: str = "b" * 64,
    module_command: str = "token:transfer",
    data: str = "",
) -> Dict[str, Any]:
    return {
        "id": f"{nonce:064x}",
        "moduleCommand": module_command,
        "nonce": f"{nonce}",
        "fee": "160000",
        "sender": {"address": sender, "publicKey": "aa" * 32},
        "params": {
            "tokenID": "0000000000000000",
            "amount": f"{nonce * 100000000}",
            "recipientAddress": recipient,
            "data": data,
        },
        "block": {"id": block_id, "height": 100 + nonce, "timestamp": timestamp},
        "signatures": ["cc" * 64],
        "executionStatus": "successful",
    }


@pytest.fixture
def endpoints() -> EndpointSet:
    return EndpointSet(primary=PRIMARY, fallbacks=(FALLBACK_A, FALLBACK_B))


@pytest.fixture
def repository(endpoints: EndpointSet) -> ServiceRepository:
    return ServiceRepository(endpoints, timeout=1.0)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def build(**overrides: Any) -> Settings:
        values = {
            "endpoint_url": PRIMARY,
            "endpoint_fallbacks": [FALLBACK_A],
            "dex_wallet_address": None,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return build
