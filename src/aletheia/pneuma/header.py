"""
Header sources supply the trusted root for verified reads.

A header at height H carries the app hash *after* executing block H-1, so
state queried at H-1 is verified against the app hash of header H.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from ..spec.models import Header
from .rpc import TendermintRpcClient


class HeaderSource(Protocol):
    def head(self, timeout: Optional[float] = None) -> Header:
        ...


class RpcHeaderSource:
    """Reads the latest header from the node's RPC.

    ``client_factory`` is called on every ``head`` so the source follows
    the session across restarts.  Trusting the node for its own header is
    only as strong as that node; hosts with a light client should supply
    their own ``HeaderSource``.
    """

    def __init__(self, client_factory: Callable[[], TendermintRpcClient]) -> None:
        self._client_factory = client_factory

    def head(self, timeout: Optional[float] = None) -> Header:
        return self._client_factory().header(timeout=timeout)


class StaticHeaderSource:
    """Always returns the same header (pinned checkpoints, tests)."""

    def __init__(self, header: Header) -> None:
        self._header = header

    def head(self, timeout: Optional[float] = None) -> Header:
        return self._header
