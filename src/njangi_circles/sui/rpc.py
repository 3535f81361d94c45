"""Sui JSON-RPC ledger reader - read-only queries against a fullnode over httpx."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from njangi_circles.exceptions import FetchFailure
from njangi_circles.models.ledger import (
    DynamicFieldInfo,
    EventPage,
    LedgerEvent,
    ObjectContent,
    TransactionInput,
)

log = logging.getLogger(__name__)

_OBJECT_OPTIONS = {"showContent": True, "showType": True}


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _expect_page(result: Any, method: str) -> None:
    if not isinstance(result, dict):
        raise FetchFailure("Malformed page result", {"method": method})


def parse_object(result: dict[str, Any], object_id: str) -> ObjectContent | None:
    """Object content from a sui_getObject result. None if it does not exist."""
    if result.get("error"):
        code = result["error"].get("code")
        if code in ("notExists", "deleted", "dynamicFieldNotFound"):
            return None
        raise FetchFailure("Object error", {"object_id": object_id, "code": code})

    data = result.get("data") or {}
    content = data.get("content") or {}
    fields = content.get("fields")
    if not isinstance(fields, dict):
        raise FetchFailure("Object has no Move content", {"object_id": object_id})
    return ObjectContent(
        object_id=data.get("objectId", object_id),
        type=content.get("type") or data.get("type", ""),
        fields=fields,
    )


def parse_dynamic_field(entry: dict[str, Any]) -> DynamicFieldInfo:
    name = entry.get("name") or {}
    return DynamicFieldInfo(
        object_id=entry.get("objectId", ""),
        name_type=name.get("type", ""),
        name_value=name.get("value"),
        object_type=entry.get("objectType", ""),
        type=entry.get("type", ""),
    )


def parse_ledger_event(entry: dict[str, Any]) -> LedgerEvent:
    event_id = entry.get("id") or {}
    timestamp = entry.get("timestampMs")
    return LedgerEvent(
        event_type=entry.get("type", ""),
        tx_digest=event_id.get("txDigest", ""),
        event_seq=_to_int(event_id.get("eventSeq")),
        timestamp_ms=_to_int(timestamp) if timestamp is not None else None,
        parsed_json=entry.get("parsedJson") or {},
    )


def parse_transaction_inputs(result: dict[str, Any], digest: str) -> list[TransactionInput]:
    """Inputs of a ProgrammableTransaction from sui_getTransactionBlock(showInput)."""
    try:
        kind = result["transaction"]["data"]["transaction"]
    except (KeyError, TypeError) as e:
        raise FetchFailure("Transaction has no input data", {"digest": digest}) from e
    if kind.get("kind") != "ProgrammableTransaction":
        log.debug("Transaction %s is %s, no pure inputs", digest[:16], kind.get("kind"))
        return []

    inputs = []
    for raw in kind.get("inputs") or []:
        if raw.get("type") == "pure":
            inputs.append(
                TransactionInput(kind="pure", value_type=raw.get("valueType"), value=raw.get("value"))
            )
        else:
            inputs.append(TransactionInput(kind=raw.get("type") or "object", value=raw.get("objectId")))
    return inputs


class SuiRpcReader:
    """LedgerReader over the Sui fullnode JSON-RPC API.

    Every transport, HTTP or JSON-RPC error is raised as FetchFailure.
    """

    def __init__(
        self,
        rpc_url: str = "https://fullnode.testnet.sui.io:443",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def close(self) -> None:
        """Close the underlying httpx client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=10))
        return self._client

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._get_client().post(self._rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException as e:
            raise FetchFailure("RPC timeout", {"method": method}) from e
        except httpx.HTTPStatusError as e:
            raise FetchFailure(
                "RPC HTTP error", {"method": method, "status": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise FetchFailure("RPC transport error", {"method": method, "error": str(e)}) from e
        except ValueError as e:
            raise FetchFailure("RPC returned invalid JSON", {"method": method}) from e

        if not isinstance(body, dict):
            raise FetchFailure("RPC returned a non-object body", {"method": method})
        if body.get("error"):
            error = body["error"]
            raise FetchFailure(
                "RPC error",
                {"method": method, "code": error.get("code"), "error": error.get("message")},
            )
        if "result" not in body:
            raise FetchFailure("RPC response has no result", {"method": method})
        return body["result"]

    # ── LedgerReader ───────────────────────────────────────

    async def get_object(self, object_id: str) -> ObjectContent | None:
        result = await self._call("sui_getObject", [object_id, _OBJECT_OPTIONS])
        return parse_object(result or {}, object_id)

    async def get_dynamic_fields(self, parent_id: str) -> list[DynamicFieldInfo]:
        fields: list[DynamicFieldInfo] = []
        cursor = None
        while True:
            result = await self._call("suix_getDynamicFields", [parent_id, cursor, None])
            _expect_page(result, "suix_getDynamicFields")
            fields.extend(parse_dynamic_field(e) for e in result.get("data") or [])
            if not result.get("hasNextPage") or not result.get("nextCursor"):
                return fields
            cursor = result["nextCursor"]

    async def get_dynamic_field_object(
        self, parent_id: str, name_type: str, name_value: Any
    ) -> ObjectContent | None:
        result = await self._call(
            "suix_getDynamicFieldObject",
            [parent_id, {"type": name_type, "value": name_value}],
        )
        return parse_object(result or {}, parent_id)

    async def query_events(
        self,
        event_type: str,
        cursor: dict[str, Any] | None = None,
        limit: int = 50,
    ) -> EventPage:
        result = await self._call(
            "suix_queryEvents", [{"MoveEventType": event_type}, cursor, limit, False]
        )
        _expect_page(result, "suix_queryEvents")
        return EventPage(
            events=[parse_ledger_event(e) for e in result.get("data") or []],
            next_cursor=result.get("nextCursor"),
            has_next_page=bool(result.get("hasNextPage")),
        )

    async def get_transaction_inputs(self, digest: str) -> list[TransactionInput]:
        result = await self._call("sui_getTransactionBlock", [digest, {"showInput": True}])
        return parse_transaction_inputs(result or {}, digest)
