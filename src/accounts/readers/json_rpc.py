"""Solana-style JSON-RPC transport: ``getMultipleAccounts`` over httpx.

Endpoints are tried in order, starting from the one that last succeeded.
Any HTTP, decoding or RPC-level error moves on to the next endpoint; when
every endpoint has failed the call raises TransportError.

Request::

    {"jsonrpc": "2.0", "id": 1, "method": "getMultipleAccounts",
     "params": [[key, ...], {"encoding": "base64", "commitment": "confirmed"}]}

Response::

    {"result": {"context": {"slot": 123},
                "value": [{"data": ["<b64>", "base64"], ...} | null, ...]}}

The context slot becomes the version of every returned record.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Sequence

import httpx

from src.accounts.base import AccountKey, FetchedAccount, RemoteBatchReader, TransportError

logger = logging.getLogger("ledgerwatch.accounts.readers.json_rpc")

# getMultipleAccounts accepts at most 100 keys per request.
_MAX_KEYS_PER_REQUEST = 100


class JsonRpcBatchReader(RemoteBatchReader):
    """Batched account reader with ordered endpoint failover."""

    max_batch_size = _MAX_KEYS_PER_REQUEST

    def __init__(
        self,
        endpoints: Sequence[str],
        commitment: str = "confirmed",
        timeout_s: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            endpoints:   RPC URLs, highest priority first.
            commitment:  Commitment level passed to the RPC.
            timeout_s:   Per-request timeout for the owned httpx client.
            http_client: Optional pre-configured httpx client (for testing).
                         Not closed by ``aclose()``.
        """
        if not endpoints:
            raise ValueError("JsonRpcBatchReader needs at least one endpoint")
        self._endpoints = list(endpoints)
        self._commitment = commitment
        self._active = 0
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._request_id = 0

    @classmethod
    def from_settings(cls, settings=None) -> "JsonRpcBatchReader":
        if settings is None:
            from src.config import get_settings

            settings = get_settings()
        return cls(
            settings.rpc_endpoints,
            commitment=settings.rpc_commitment,
            timeout_s=settings.rpc_timeout_seconds,
        )

    @property
    def active_endpoint(self) -> str:
        return self._endpoints[self._active]

    async def fetch_many(self, keys: Sequence[AccountKey]) -> list[FetchedAccount]:
        if not keys:
            return []
        if len(keys) > self.max_batch_size:
            raise TransportError(
                f"getMultipleAccounts takes at most {self.max_batch_size} keys, got {len(keys)}"
            )

        payload = self._build_payload(keys)
        last_error: Exception | None = None
        count = len(self._endpoints)
        for offset in range(count):
            index = (self._active + offset) % count
            endpoint = self._endpoints[index]
            try:
                body = await self._post(endpoint, payload)
                records = _parse_response(keys, body)
            except (httpx.HTTPError, ValueError, TransportError) as exc:
                last_error = exc
                logger.warning(
                    "getMultipleAccounts failed on %s (%d keys): %s", endpoint, len(keys), exc
                )
                continue
            if index != self._active:
                logger.warning(
                    "Failing over from %s to %s", self.active_endpoint, endpoint
                )
                self._active = index
            return records

        raise TransportError(
            f"All {count} RPC endpoint(s) failed for getMultipleAccounts"
        ) from last_error

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    def _build_payload(self, keys: Sequence[AccountKey]) -> dict:
        self._request_id += 1
        return {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": "getMultipleAccounts",
            "params": [
                list(keys),
                {"encoding": "base64", "commitment": self._commitment},
            ],
        }

    async def _post(self, endpoint: str, payload: dict) -> dict:
        response = await self._http_client.post(endpoint, json=payload)
        response.raise_for_status()
        return response.json()


def _parse_response(keys: Sequence[AccountKey], body: Any) -> list[FetchedAccount]:
    """Turn a getMultipleAccounts response body into FetchedAccount records.

    Raises:
        TransportError: On an RPC error object or a malformed body.
    """
    if not isinstance(body, dict):
        raise TransportError(f"Unexpected RPC response type: {type(body).__name__}")
    if "error" in body:
        raise TransportError(f"RPC error: {body['error']}")

    try:
        result = body["result"]
        slot = int(result["context"]["slot"])
        values = result["value"]
    except (KeyError, TypeError, ValueError) as exc:
        raise TransportError(f"Malformed getMultipleAccounts response: {exc!r}") from exc

    if len(values) != len(keys):
        raise TransportError(
            f"getMultipleAccounts returned {len(values)} values for {len(keys)} keys"
        )

    records = []
    for key, value in zip(keys, values):
        data = None
        if value is not None:
            try:
                data = base64.b64decode(value["data"][0])
            except (KeyError, IndexError, TypeError, binascii.Error) as exc:
                raise TransportError(f"Undecodable account data for {key}: {exc!r}") from exc
        records.append(FetchedAccount(key=key, data=data, version=slot))
    return records
