"""
JSON-RPC client for the node's Tendermint RPC endpoint.

Carries the raw ABCI queries (value + Merkle proof), block headers and
node status.  All requests go through ``send_request``, which maps httpx
failures onto the accessor error taxonomy and honours the session's
lifetime: once the session is stopped every call raises ``CanceledError``.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional, Type

import httpx

from ..errors import (
    AccessorError,
    CanceledError,
    DeadlineExceededError,
    HeaderUnavailableError,
    QueryFailedError,
)
from ..spec.models import Header
from ..spec.schemas import SCHEMA_NAMES, SchemaRegistry, SchemaValidationError
from ..utils import b64decode
from .proof import ProofOp

logger = logging.getLogger(__name__)


def send_request(
    client: httpx.Client,
    lifetime: threading.Event,
    method: str,
    url: str,
    *,
    timeout: Optional[float] = None,
    error_cls: Type[AccessorError] = QueryFailedError,
    **kwargs: Any,
) -> httpx.Response:
    """Issue one HTTP request on a session channel."""
    if lifetime.is_set():
        raise CanceledError(f"session stopped before {method} {url}")
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        return client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise DeadlineExceededError(f"{method} {url} timed out") from exc
    except (httpx.HTTPError, RuntimeError) as exc:
        # httpx raises RuntimeError when the client was closed underneath us
        if lifetime.is_set():
            raise CanceledError(f"session stopped during {method} {url}") from exc
        raise error_cls(f"{method} {url} failed: {exc}") from exc


@dataclass(frozen=True)
class AbciQueryResponse:
    code: int
    log: str
    value: bytes
    proof_ops: tuple[ProofOp, ...]
    height: int
    codespace: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "AbciQueryResponse":
        registry = registry or SchemaRegistry.default()
        registry.validate_instance(payload, SCHEMA_NAMES["abci_query"])
        response = payload["response"]
        ops = ((response.get("proofOps") or {}).get("ops")) or []
        return cls(
            code=int(response.get("code", 0)),
            log=response.get("log", ""),
            value=b64decode(response.get("value")),
            proof_ops=tuple(
                ProofOp(type=op["type"], key=b64decode(op.get("key")), data=b64decode(op.get("data")))
                for op in ops
            ),
            height=int(response.get("height", "0")),
            codespace=response.get("codespace", ""),
        )

    @property
    def is_ok(self) -> bool:
        return self.code == 0


class TendermintRpcClient:
    """Raw ABCI-style query client."""

    def __init__(self, client: httpx.Client, lifetime: threading.Event) -> None:
        self._client = client
        self._lifetime = lifetime
        self._ids = itertools.count(1)

    def call(self, method: str, params: dict[str, Any], timeout: Optional[float] = None) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            QueryFailedError: If the call fails or the node returns an error
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        response = send_request(self._client, self._lifetime, "POST", "/", json=payload, timeout=timeout)
        try:
            data = response.json()
        except ValueError as exc:
            raise QueryFailedError(
                f"RPC {method} returned HTTP {response.status_code} with a non-JSON body"
            ) from exc

        if "error" in data:
            error = data["error"] or {}
            message = error.get("data") or error.get("message") or str(error)
            raise QueryFailedError(f"RPC error on {method}: {message}", code=error.get("code"))
        if response.is_error:
            raise QueryFailedError(f"RPC {method} returned HTTP {response.status_code}")

        return data.get("result")

    def status(self, timeout: Optional[float] = None) -> dict[str, Any]:
        result = self.call("status", {}, timeout=timeout)
        try:
            SchemaRegistry.default().validate_instance(result, SCHEMA_NAMES["status"])
        except SchemaValidationError as exc:
            raise QueryFailedError(f"malformed status response: {exc}") from exc
        return result

    def header(self, height: Optional[int] = None, timeout: Optional[float] = None) -> Header:
        params = {} if height is None else {"height": str(height)}
        try:
            result = self.call("header", params, timeout=timeout)
        except QueryFailedError as exc:
            raise HeaderUnavailableError(f"header unavailable: {exc}", code=exc.code) from exc
        try:
            return Header.from_dict((result or {}).get("header"))
        except (SchemaValidationError, ValueError) as exc:
            raise HeaderUnavailableError(f"malformed header response: {exc}") from exc

    def abci_query(
        self,
        path: str,
        data: bytes,
        height: int,
        prove: bool,
        timeout: Optional[float] = None,
    ) -> AbciQueryResponse:
        logger.debug("abci_query path=%s height=%d prove=%s", path, height, prove)
        result = self.call(
            "abci_query",
            {"path": path, "data": data.hex(), "height": str(height), "prove": prove},
            timeout=timeout,
        )
        try:
            return AbciQueryResponse.from_dict(result)
        except (SchemaValidationError, ValueError, TypeError) as exc:
            raise QueryFailedError(f"malformed abci_query response: {exc}") from exc
