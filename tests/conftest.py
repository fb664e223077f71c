"""
Shared fixtures: an in-memory node speaking Tendermint JSON-RPC and the REST
gateway through ``httpx.MockTransport``.  Balances are committed into a real
two-level Merkle tree so proofs returned by the fake verify with the library
runtime.
"""

from __future__ import annotations

import base64
import json
import secrets
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import httpx
import pytest

from aletheia.pneuma.proof import MULTISTORE_OP, VALUE_OP, leaf_hash, merkle_root, merkle_steps
from aletheia.pneuma.tx import JsonTxCodec
from aletheia.sigil.address import AccAddress, ValAddress
from aletheia.sigil.keyring import KeyringSigner
from aletheia.state import CoreAccessor, account_balances_key
from aletheia.utils import sha256

CORE_IP = "node.test"
RPC_PORT = 26657
API_PORT = 1317
CHAIN_ID = "test-chain"
DENOM = "utia"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass
class FakeNode:
    head_height: int = 10
    accounts: dict[str, tuple[int, int]] = field(default_factory=dict)
    bank: dict[bytes, bytes] = field(default_factory=dict)
    next_code: int = 0
    requests: list[httpx.Request] = field(default_factory=list)
    query_heights: list[int] = field(default_factory=list)
    broadcasts: list[dict[str, Any]] = field(default_factory=list)
    staking: dict[str, Any] = field(default_factory=dict)
    fail_status: bool = False
    account_error: Optional[int] = None

    # ============ State ============

    def set_balance(self, address: AccAddress, amount: int, denom: str = DENOM) -> bytes:
        key = account_balances_key(address, denom)
        self.bank[key] = str(amount).encode("ascii")
        return key

    def _bank_leaves(self) -> tuple[list[bytes], list[bytes]]:
        keys = sorted(self.bank)
        return keys, [leaf_hash(k, self.bank[k]) for k in keys]

    def _store_roots(self) -> dict[str, bytes]:
        _, leaves = self._bank_leaves()
        return {
            "acc": sha256(b"acc-store"),
            "bank": merkle_root(leaves),
            "staking": sha256(b"staking-store"),
        }

    def _store_leaves(self) -> tuple[list[str], list[bytes]]:
        roots = self._store_roots()
        names = sorted(roots)
        return names, [leaf_hash(n.encode(), roots[n]) for n in names]

    @property
    def app_hash(self) -> bytes:
        _, leaves = self._store_leaves()
        return merkle_root(leaves)

    def proof_ops(self, key: bytes) -> list[dict[str, str]]:
        keys, leaves = self._bank_leaves()
        names, store_leaves = self._store_leaves()
        return [
            {
                "type": VALUE_OP,
                "key": _b64(key),
                "data": _b64(merkle_steps(leaves, keys.index(key))),
            },
            {
                "type": MULTISTORE_OP,
                "key": _b64(b"bank"),
                "data": _b64(merkle_steps(store_leaves, names.index("bank"))),
            },
        ]

    # ============ Transport ============

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, path_prefix: str = "") -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]

    def rpc_calls(self, method: str) -> list[dict[str, Any]]:
        out = []
        for r in self.requests:
            if r.url.port == RPC_PORT:
                payload = json.loads(r.content)
                if payload["method"] == method:
                    out.append(payload)
        return out

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.port == RPC_PORT:
            return self._handle_rpc(request)
        return self._handle_rest(request)

    def _rpc_result(self, payload: dict[str, Any], result: Any) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    def _handle_rpc(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        params = payload["params"]

        if method == "status":
            if self.fail_status:
                return httpx.Response(503, text="node unavailable")
            return self._rpc_result(payload, {
                "node_info": {"network": CHAIN_ID, "version": "0.34.20"},
                "sync_info": {"latest_block_height": str(self.head_height), "catching_up": False},
            })

        if method == "header":
            return self._rpc_result(payload, {
                "header": {
                    "chain_id": CHAIN_ID,
                    "height": str(self.head_height),
                    "app_hash": self.app_hash.hex().upper(),
                }
            })

        if method == "abci_query":
            height = int(params["height"])
            self.query_heights.append(height)
            key = bytes.fromhex(params["data"])
            value = self.bank.get(key)
            response: dict[str, Any] = {"code": 0, "log": "", "height": str(height)}
            if value is None:
                response["value"] = None
            else:
                response["value"] = _b64(value)
                response["proofOps"] = {"ops": self.proof_ops(key)}
            return self._rpc_result(payload, {"response": response})

        return httpx.Response(200, json={
            "jsonrpc": "2.0", "id": payload["id"],
            "error": {"code": -32601, "message": "Method not found"},
        })

    def _handle_rest(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if path.startswith("/cosmos/auth/v1beta1/accounts/"):
            if self.account_error is not None:
                return httpx.Response(self.account_error, json={"code": 5, "message": "account not found"})
            address = path.rsplit("/", 1)[1]
            number, sequence = self.accounts.get(address, (0, 0))
            return httpx.Response(200, json={"account": {
                "@type": "/cosmos.auth.v1beta1.BaseAccount",
                "address": address,
                "account_number": str(number),
                "sequence": str(sequence),
            }})

        if path == "/cosmos/tx/v1beta1/txs" and request.method == "POST":
            body = json.loads(request.content)
            self.broadcasts.append(body)
            return httpx.Response(200, json={"tx_response": {
                "height": str(self.head_height),
                "txhash": "AB" * 32,
                "codespace": "" if self.next_code == 0 else "sdk",
                "code": self.next_code,
                "raw_log": "" if self.next_code == 0 else "insufficient funds",
                "gas_wanted": "100000",
                "gas_used": "52000",
            }})

        if path in self.staking:
            return httpx.Response(200, json=self.staking[path])

        return httpx.Response(404, json={"code": 5, "message": f"no route for {path}"})

    def decoded_broadcast(self, index: int = -1) -> dict[str, Any]:
        tx_bytes = base64.b64decode(self.broadcasts[index]["tx_bytes"])
        tx = JsonTxCodec().decode(tx_bytes)
        return {"body": tx.body, "auth_info": tx.auth_info, "signatures": tx.signatures}


# ============ Fixtures ============


@pytest.fixture()
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def signer() -> KeyringSigner:
    return KeyringSigner("0x" + secrets.token_hex(32), CHAIN_ID)


@pytest.fixture()
def validator() -> ValAddress:
    return ValAddress(bytes(range(20)))


@pytest.fixture()
def accessor(node: FakeNode, signer: KeyringSigner) -> Iterator[CoreAccessor]:
    node.accounts[str(signer.get_address())] = (7, 3)
    acc = CoreAccessor(
        signer,
        None,
        CORE_IP,
        RPC_PORT,
        API_PORT,
        bond_denom=DENOM,
        transport=node.transport,
    )
    acc.start()
    yield acc
    acc.stop()
