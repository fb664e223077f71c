"""
Session - owns the network channels to one node.

Two channels are opened per session: the Tendermint JSON-RPC endpoint
(raw ABCI queries, headers) and the REST gateway (accounts, staking
queries, broadcast).  Three handles are bound over them.  Either all
handles are valid or none are.

Start and stop are called by a single owner, never concurrently.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import httpx

from ..errors import AccessorError, AlreadyConnectedError, CoreConnectionError, NotConnectedError
from .rest import GatewayClient, StakingQueryClient
from .rpc import TendermintRpcClient

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class CoreSession:
    def __init__(
        self,
        core_ip: str,
        rpc_port: str | int,
        api_port: str | int,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.core_ip = core_ip
        self.rpc_port = str(rpc_port)
        self.api_port = str(api_port)
        self.timeout = timeout
        self._transport = transport
        self._log = log or logger

        self._rpc_http: Optional[httpx.Client] = None
        self._api_http: Optional[httpx.Client] = None
        self._query_client: Optional[GatewayClient] = None
        self._staking_client: Optional[StakingQueryClient] = None
        self._abci_client: Optional[TendermintRpcClient] = None

        self._lifetime: Optional[threading.Event] = None
        self._cancel: Optional[Callable[[], None]] = None

    @property
    def rpc_url(self) -> str:
        return f"http://{self.core_ip}:{self.rpc_port}"

    @property
    def api_url(self) -> str:
        return f"http://{self.core_ip}:{self.api_port}"

    # ============ Lifecycle ============

    def start(self, timeout: Optional[float] = None) -> None:
        """
        Open both channels and check that the node answers.

        Raises:
            AlreadyConnectedError: If the session is already connected.
            CoreConnectionError: If the node cannot be reached.
        """
        if self._rpc_http is not None:
            raise AlreadyConnectedError("already connected to core endpoint")

        lifetime = threading.Event()
        rpc_http: Optional[httpx.Client] = None
        api_http: Optional[httpx.Client] = None
        try:
            rpc_http = httpx.Client(base_url=self.rpc_url, timeout=self.timeout, transport=self._transport)
            api_http = httpx.Client(base_url=self.api_url, timeout=self.timeout, transport=self._transport)
            abci_client = TendermintRpcClient(rpc_http, lifetime)
            status = abci_client.status(timeout=timeout)
        except (AccessorError, httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            for client in (rpc_http, api_http):
                if client is not None:
                    client.close()
            raise CoreConnectionError(f"failed to connect to core endpoint {self.rpc_url}: {exc}") from exc

        query_client = GatewayClient(api_http, lifetime)
        self._rpc_http = rpc_http
        self._api_http = api_http
        self._abci_client = abci_client
        self._query_client = query_client
        self._staking_client = StakingQueryClient(query_client)
        self._lifetime = lifetime
        self._cancel = lifetime.set

        self._log.info(
            "connected to core endpoint %s (latest height %s)",
            self.rpc_url, status["sync_info"]["latest_block_height"],
        )

    def stop(self) -> None:
        """
        Close both channels and cancel the session lifetime.

        Safe to call repeatedly and before ``start``.

        Raises:
            CoreConnectionError: If a channel fails to close.  The session
                is stopped regardless.
        """
        if self._cancel is None:
            self._log.warning("core session already stopped")
            return
        if self._rpc_http is None:
            self._log.warning("no connection found to close")
            return

        # cancel first so in-flight calls report CanceledError
        self._cancel_lifetime()

        clients = (self._rpc_http, self._api_http)
        self._rpc_http = None
        self._api_http = None
        self._query_client = None
        self._staking_client = None
        self._abci_client = None

        failures = []
        for client in clients:
            if client is None:
                continue
            try:
                client.close()
            except (httpx.HTTPError, OSError, RuntimeError) as exc:
                failures.append(exc)
        if failures:
            raise CoreConnectionError(f"failed to close core connection: {failures[0]}") from failures[0]

    def _cancel_lifetime(self) -> None:
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()

    def is_stopped(self) -> bool:
        return self._lifetime is not None and self._lifetime.is_set()

    @property
    def is_connected(self) -> bool:
        return self._rpc_http is not None

    # ============ Handles ============

    @property
    def query_client(self) -> GatewayClient:
        if self._query_client is None:
            raise NotConnectedError("not connected to core endpoint")
        return self._query_client

    @property
    def staking_client(self) -> StakingQueryClient:
        if self._staking_client is None:
            raise NotConnectedError("not connected to core endpoint")
        return self._staking_client

    @property
    def abci_client(self) -> TendermintRpcClient:
        if self._abci_client is None:
            raise NotConnectedError("not connected to core endpoint")
        return self._abci_client
