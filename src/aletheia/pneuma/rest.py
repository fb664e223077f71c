"""
REST client for the node's gRPC-gateway endpoint.

Serves the account (sequence) query, typed staking queries and transaction
broadcast.  Gateway errors come back as ``{"code": <grpc code>, "message": ...}``
and surface as ``QueryFailedError`` / ``BroadcastFailedError`` carrying that code.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Type

import httpx

from ..errors import AccessorError, BroadcastFailedError, QueryFailedError
from ..spec.models import AccountInfo, Delegation, Redelegations, TxResponse, UnbondingDelegation
from ..spec.schemas import SchemaValidationError
from ..utils import b64encode
from .rpc import send_request
from .tx import BroadcastMode

logger = logging.getLogger(__name__)


class GatewayClient:
    """Generic query client over the REST gateway."""

    def __init__(self, client: httpx.Client, lifetime: threading.Event) -> None:
        self._client = client
        self._lifetime = lifetime

    def _json(
        self,
        method: str,
        path: str,
        *,
        timeout: Optional[float] = None,
        error_cls: Type[AccessorError] = QueryFailedError,
        **kwargs: Any,
    ) -> dict[str, Any]:
        response = send_request(
            self._client, self._lifetime, method, path,
            timeout=timeout, error_cls=error_cls, **kwargs,
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise error_cls(
                f"{method} {path} returned HTTP {response.status_code} with a non-JSON body"
            ) from exc

        if response.is_error:
            message = data.get("message", "") if isinstance(data, dict) else ""
            code = data.get("code") if isinstance(data, dict) else None
            text = f"{method} {path} failed with HTTP {response.status_code}: {message}"
            if error_cls is QueryFailedError:
                raise QueryFailedError(text, code=code)
            raise error_cls(text)
        if not isinstance(data, dict):
            raise error_cls(f"{method} {path} returned a non-object body")
        return data

    def get(self, path: str, params: Optional[dict[str, str]] = None,
            timeout: Optional[float] = None) -> dict[str, Any]:
        return self._json("GET", path, params=params, timeout=timeout)

    def account(self, address: str, timeout: Optional[float] = None) -> AccountInfo:
        data = self.get(f"/cosmos/auth/v1beta1/accounts/{address}", timeout=timeout)
        try:
            return AccountInfo.from_dict(data)
        except (SchemaValidationError, ValueError) as exc:
            raise QueryFailedError(f"malformed account response: {exc}") from exc

    def broadcast_tx(
        self,
        tx_bytes: bytes,
        mode: BroadcastMode = BroadcastMode.BLOCK,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        logger.debug("broadcasting %d byte tx with %s", len(tx_bytes), mode.value)
        data = self._json(
            "POST",
            "/cosmos/tx/v1beta1/txs",
            json={"tx_bytes": b64encode(tx_bytes), "mode": mode.value},
            timeout=timeout,
            error_cls=BroadcastFailedError,
        )
        try:
            return TxResponse.from_dict(data)
        except (SchemaValidationError, ValueError) as exc:
            raise BroadcastFailedError(f"malformed broadcast response: {exc}") from exc


class StakingQueryClient:
    """Typed staking queries keyed by delegator/validator pairs."""

    def __init__(self, gateway: GatewayClient) -> None:
        self._gateway = gateway

    def _parse(self, model, data: dict[str, Any]):
        try:
            return model.from_dict(data)
        except (SchemaValidationError, ValueError, KeyError) as exc:
            raise QueryFailedError(f"malformed {model.__name__} response: {exc}") from exc

    def delegation(self, delegator: str, validator: str,
                   timeout: Optional[float] = None) -> Delegation:
        data = self._gateway.get(
            f"/cosmos/staking/v1beta1/validators/{validator}/delegations/{delegator}",
            timeout=timeout,
        )
        return self._parse(Delegation, data)

    def unbonding_delegation(self, delegator: str, validator: str,
                             timeout: Optional[float] = None) -> UnbondingDelegation:
        data = self._gateway.get(
            f"/cosmos/staking/v1beta1/validators/{validator}/delegations/{delegator}/unbonding_delegation",
            timeout=timeout,
        )
        return self._parse(UnbondingDelegation, data)

    def redelegations(self, delegator: str, src_validator: str, dst_validator: str,
                      timeout: Optional[float] = None) -> Redelegations:
        data = self._gateway.get(
            f"/cosmos/staking/v1beta1/delegators/{delegator}/redelegations",
            params={"src_validator_addr": src_validator, "dst_validator_addr": dst_validator},
            timeout=timeout,
        )
        return self._parse(Redelegations, data)
