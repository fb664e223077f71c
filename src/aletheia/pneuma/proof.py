"""
Merkle proof runtime and balance verification.

A proof is a chain of ``ProofOp``s.  Each op takes the previous output
(starting from the queried value), hashes it up its own Merkle path and
yields a root.  The first op proves a key inside a substore and yields
the substore root; the second proves that root inside the multistore and
yields the app hash, which must equal the trusted root from the header.

Hashing follows the RFC 6962 layout used by Tendermint's simple Merkle
tree:

    leaf  = sha256(0x00 || uvarint(len(key)) || key || uvarint(32) || sha256(value))
    inner = sha256(0x01 || left || right)

Op data is a sequence of 33-byte steps from leaf to root, each
``side (1) || sibling (32)`` where side 0x00 places the sibling on the
left and 0x01 on the right.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence, Union
from urllib.parse import quote, unquote

from ..errors import MalformedValueError, ProofVerificationFailedError
from ..spec.models import Balance
from ..utils import sha256, uvarint

logger = logging.getLogger(__name__)

VALUE_OP = "aletheia:v"
MULTISTORE_OP = "aletheia:m"

SIBLING_LEFT = 0x00
SIBLING_RIGHT = 0x01
STEP_SIZE = 33

# Amounts are 256-bit integers on the ledger.
MAX_AMOUNT_BITS = 256

_DECIMAL = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ProofOp:
    type: str
    key: bytes
    data: bytes


# ============ Hashing ============


def leaf_hash(key: bytes, value: bytes) -> bytes:
    return sha256(b"\x00" + uvarint(len(key)) + key + uvarint(32) + sha256(value))


def inner_hash(left: bytes, right: bytes) -> bytes:
    return sha256(b"\x01" + left + right)


def _split_point(n: int) -> int:
    k = 1
    while k * 2 < n:
        k *= 2
    return k


def merkle_root(hashes: Sequence[bytes]) -> bytes:
    """Root of a simple Merkle tree over already-hashed leaves."""
    if not hashes:
        return sha256(b"")
    if len(hashes) == 1:
        return hashes[0]
    k = _split_point(len(hashes))
    return inner_hash(merkle_root(hashes[:k]), merkle_root(hashes[k:]))


def merkle_steps(hashes: Sequence[bytes], index: int) -> bytes:
    """Encoded leaf-to-root path for ``hashes[index]``."""
    if not 0 <= index < len(hashes):
        raise IndexError(f"leaf index {index} out of range for {len(hashes)} leaves")
    steps: list[bytes] = []
    _collect_steps(list(hashes), index, steps)
    return b"".join(steps)


def _collect_steps(hashes: list[bytes], index: int, steps: list[bytes]) -> None:
    if len(hashes) <= 1:
        return
    k = _split_point(len(hashes))
    if index < k:
        _collect_steps(hashes[:k], index, steps)
        steps.append(bytes([SIBLING_RIGHT]) + merkle_root(hashes[k:]))
    else:
        _collect_steps(hashes[k:], index - k, steps)
        steps.append(bytes([SIBLING_LEFT]) + merkle_root(hashes[:k]))


def fold_steps(leaf: bytes, data: bytes) -> bytes:
    if len(data) % STEP_SIZE:
        raise ProofVerificationFailedError(
            f"proof data length {len(data)} is not a multiple of {STEP_SIZE}"
        )
    current = leaf
    for offset in range(0, len(data), STEP_SIZE):
        side = data[offset]
        sibling = data[offset + 1:offset + STEP_SIZE]
        if side == SIBLING_LEFT:
            current = inner_hash(sibling, current)
        elif side == SIBLING_RIGHT:
            current = inner_hash(current, sibling)
        else:
            raise ProofVerificationFailedError(f"invalid proof step side byte 0x{side:02x}")
    return current


# ============ Key paths ============


def key_path(*keys: Union[str, bytes]) -> str:
    """Build a key path; bytes segments are hex-encoded as ``x:<hex>``."""
    parts = []
    for key in keys:
        if isinstance(key, bytes):
            parts.append("x:" + key.hex())
        else:
            parts.append(quote(key, safe=""))
    return "/" + "/".join(parts)


def parse_key_path(path: str) -> list[bytes]:
    if not path.startswith("/"):
        raise ProofVerificationFailedError(f"key path must start with '/': {path!r}")
    keys = []
    for part in path[1:].split("/"):
        if part.startswith("x:"):
            try:
                keys.append(bytes.fromhex(part[2:]))
            except ValueError as exc:
                raise ProofVerificationFailedError(f"invalid hex key path segment {part!r}") from exc
        else:
            keys.append(unquote(part).encode("utf-8"))
    return keys


# ============ Runtime ============


class ProofOperator(Protocol):
    def get_key(self) -> bytes:
        ...

    def run(self, args: list[bytes]) -> list[bytes]:
        ...


@dataclass(frozen=True)
class MerkleOperator:
    """Proves one value under ``key``; shared by value and multistore ops."""

    key: bytes
    data: bytes

    def get_key(self) -> bytes:
        return self.key

    def run(self, args: list[bytes]) -> list[bytes]:
        if len(args) != 1:
            raise ProofVerificationFailedError(f"expected 1 proof input, got {len(args)}")
        return [fold_steps(leaf_hash(self.key, args[0]), self.data)]


OpDecoder = Callable[[ProofOp], ProofOperator]


@dataclass
class ProofRuntime:
    decoders: dict[str, OpDecoder] = field(default_factory=dict)

    def register_op_decoder(self, op_type: str, decoder: OpDecoder) -> None:
        if op_type in self.decoders:
            raise ValueError(f"decoder already registered for {op_type!r}")
        self.decoders[op_type] = decoder

    def decode(self, op: ProofOp) -> ProofOperator:
        decoder = self.decoders.get(op.type)
        if decoder is None:
            raise ProofVerificationFailedError(f"unrecognized proof op type {op.type!r}")
        return decoder(op)

    def verify_value(self, ops: Sequence[ProofOp], root: bytes, keypath: str, value: bytes) -> None:
        """Verify that ``value`` is stored at ``keypath`` under ``root``.

        Raises:
            ProofVerificationFailedError: On any mismatch or malformed op.
        """
        if not ops:
            raise ProofVerificationFailedError("proof has no operations")

        keys = parse_key_path(keypath)
        args = [value]
        for i, op in enumerate(ops):
            operator = self.decode(op)
            key = operator.get_key()
            if key:
                if not keys:
                    raise ProofVerificationFailedError(f"key path has too few parts for op {i}")
                expected = keys.pop()
                if expected != key:
                    raise ProofVerificationFailedError(
                        f"key mismatch on op {i}: expected {expected.hex()}, got {key.hex()}"
                    )
            args = operator.run(args)

        if args[0] != root:
            raise ProofVerificationFailedError(
                f"calculated root hash {args[0].hex()} does not match trusted root {root.hex()}"
            )
        if keys:
            raise ProofVerificationFailedError(f"key path {keypath!r} not fully consumed")


def default_proof_runtime() -> ProofRuntime:
    runtime = ProofRuntime()
    runtime.register_op_decoder(VALUE_OP, lambda op: MerkleOperator(op.key, op.data))
    runtime.register_op_decoder(MULTISTORE_OP, lambda op: MerkleOperator(op.key, op.data))
    return runtime


# ============ Balance ============


def parse_amount(raw_value: bytes) -> int:
    try:
        text = raw_value.decode("ascii")
    except UnicodeDecodeError as exc:
        raise MalformedValueError(f"cannot convert {raw_value!r} into an amount") from exc
    if not _DECIMAL.fullmatch(text):
        raise MalformedValueError(f"cannot convert {text!r} into an amount")
    amount = int(text)
    if amount.bit_length() > MAX_AMOUNT_BITS:
        raise MalformedValueError(f"amount {text} exceeds {MAX_AMOUNT_BITS} bits")
    return amount


def verify_balance(
    raw_value: bytes,
    proof_ops: Sequence[ProofOp],
    trusted_root: bytes,
    store_key: str,
    proof_path: bytes,
    *,
    denom: str,
    runtime: Optional[ProofRuntime] = None,
    log: Optional[logging.Logger] = None,
) -> Balance:
    """
    Verify a queried balance against a trusted root.

    Args:
        raw_value: Value bytes returned by the node (decimal amount)
        proof_ops: Proof returned alongside the value
        trusted_root: App hash of the header one block above the query height
        store_key: Substore name (e.g. "bank")
        proof_path: Key of the balance inside the substore
        denom: Denomination of the returned balance

    Returns:
        The verified balance.  An empty value means the account does not
        exist yet and yields a zero balance without a proof check.

    Raises:
        MalformedValueError: If the value is not a non-negative integer.
        ProofVerificationFailedError: If the proof does not commit to the value.
    """
    log = log or logger
    if not raw_value:
        log.warning(
            "balance at %s/%s is empty, reporting zero without a membership proof",
            store_key, proof_path.hex(),
        )
        return Balance(denom=denom, amount=0)

    amount = parse_amount(raw_value)

    runtime = runtime or default_proof_runtime()
    runtime.verify_value(proof_ops, trusted_root, key_path(store_key, proof_path), raw_value)

    return Balance(denom=denom, amount=amount)
