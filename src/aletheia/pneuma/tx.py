"""
Transaction Builder - Build, sign, and encode ledger transactions.

Messages are plain dataclasses that render to the ledger's JSON message
form.  ``JsonTxCodec`` is the default wire codec: RFC 8785 canonical JSON
for both the sign document and the transaction bytes.  A host talking to a
chain with a different encoding injects its own ``TxCodec`` into the signer.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from ..errors import NoSignerAddressError, SigningFailedError
from ..sigil.crypto import SignatureError, canonical_json, recover_signer
from ..spec.models import Coin
from ..utils import b64encode

DEFAULT_GAS_LIMIT = 200_000


class BroadcastMode(str, Enum):
    """Delivery guarantee requested when broadcasting."""

    ASYNC = "BROADCAST_MODE_ASYNC"
    SYNC = "BROADCAST_MODE_SYNC"
    BLOCK = "BROADCAST_MODE_BLOCK"


# ============ Messages ============


class Msg(Protocol):
    type_url: str

    def to_dict(self) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class MsgSend:
    from_address: str
    to_address: str
    amount: tuple[Coin, ...]

    type_url = "/cosmos.bank.v1beta1.MsgSend"

    def to_dict(self) -> dict[str, Any]:
        return {
            "@type": self.type_url,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "amount": [c.to_dict() for c in self.amount],
        }


@dataclass(frozen=True)
class MsgDelegate:
    delegator_address: str
    validator_address: str
    amount: Coin

    type_url = "/cosmos.staking.v1beta1.MsgDelegate"

    def to_dict(self) -> dict[str, Any]:
        return {
            "@type": self.type_url,
            "delegator_address": self.delegator_address,
            "validator_address": self.validator_address,
            "amount": self.amount.to_dict(),
        }


@dataclass(frozen=True)
class MsgUndelegate(MsgDelegate):
    type_url = "/cosmos.staking.v1beta1.MsgUndelegate"


@dataclass(frozen=True)
class MsgBeginRedelegate:
    delegator_address: str
    validator_src_address: str
    validator_dst_address: str
    amount: Coin

    type_url = "/cosmos.staking.v1beta1.MsgBeginRedelegate"

    def to_dict(self) -> dict[str, Any]:
        return {
            "@type": self.type_url,
            "delegator_address": self.delegator_address,
            "validator_src_address": self.validator_src_address,
            "validator_dst_address": self.validator_dst_address,
            "amount": self.amount.to_dict(),
        }


@dataclass(frozen=True)
class MsgCancelUnbondingDelegation:
    delegator_address: str
    validator_address: str
    amount: Coin
    creation_height: int

    type_url = "/cosmos.staking.v1beta1.MsgCancelUnbondingDelegation"

    def to_dict(self) -> dict[str, Any]:
        return {
            "@type": self.type_url,
            "delegator_address": self.delegator_address,
            "validator_address": self.validator_address,
            "amount": self.amount.to_dict(),
            "creation_height": str(self.creation_height),
        }


@dataclass(frozen=True)
class MsgPayForData:
    signer: str
    namespace_id: bytes
    message: bytes

    type_url = "/payment.MsgPayForData"

    def to_dict(self) -> dict[str, Any]:
        return {
            "@type": self.type_url,
            "signer": self.signer,
            "namespace_id": b64encode(self.namespace_id),
            "message": b64encode(self.message),
            "message_size": str(len(self.message)),
        }


# ============ Envelope ============


@dataclass
class TxBuilder:
    """Unsigned transaction options; mutated only by ``TxBuilderOption``s."""

    gas_limit: int = DEFAULT_GAS_LIMIT
    fee_amount: tuple[Coin, ...] = ()
    memo: str = ""

    def body(self, msgs: list[Msg]) -> dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in msgs],
            "memo": self.memo,
        }

    def auth_info(self, signer: str, sequence: int) -> dict[str, Any]:
        return {
            "signer_infos": [{"signer": signer, "sequence": str(sequence)}],
            "fee": {
                "amount": [c.to_dict() for c in self.fee_amount],
                "gas_limit": str(self.gas_limit),
            },
        }


TxBuilderOption = Callable[[TxBuilder], None]


def set_gas_limit(limit: int) -> TxBuilderOption:
    def apply(builder: TxBuilder) -> None:
        builder.gas_limit = limit
    return apply


def set_fee_amount(*coins: Coin) -> TxBuilderOption:
    def apply(builder: TxBuilder) -> None:
        builder.fee_amount = tuple(coins)
    return apply


def set_memo(memo: str) -> TxBuilderOption:
    def apply(builder: TxBuilder) -> None:
        builder.memo = memo
    return apply


@dataclass(frozen=True)
class SignedTx:
    body: dict[str, Any]
    auth_info: dict[str, Any]
    signatures: tuple[bytes, ...] = field(default_factory=tuple)


class TxCodec(Protocol):
    def sign_doc_bytes(self, body: dict[str, Any], auth_info: dict[str, Any],
                       chain_id: str, account_number: int) -> bytes:
        ...

    def encode(self, tx: SignedTx) -> bytes:
        ...

    def decode(self, tx_bytes: bytes) -> SignedTx:
        ...


class JsonTxCodec:
    """Canonical-JSON transaction codec."""

    def sign_doc_bytes(self, body: dict[str, Any], auth_info: dict[str, Any],
                       chain_id: str, account_number: int) -> bytes:
        return canonical_json({
            "body": body,
            "auth_info": auth_info,
            "chain_id": chain_id,
            "account_number": str(account_number),
        })

    def encode(self, tx: SignedTx) -> bytes:
        return canonical_json({
            "body": tx.body,
            "auth_info": tx.auth_info,
            "signatures": [sig.hex() for sig in tx.signatures],
        })

    def decode(self, tx_bytes: bytes) -> SignedTx:
        payload = json.loads(tx_bytes.decode("utf-8"))
        return SignedTx(
            body=payload["body"],
            auth_info=payload["auth_info"],
            signatures=tuple(bytes.fromhex(s) for s in payload["signatures"]),
        )


def verify_tx_signature(
    tx_bytes: bytes,
    chain_id: str,
    account_number: int,
    codec: Optional[TxCodec] = None,
) -> bytes:
    """
    Recover the signer of an encoded transaction.

    Returns:
        20-byte address that produced the first signature

    Raises:
        SignatureError: If the transaction is unsigned or the signature is invalid.
    """
    codec = codec or JsonTxCodec()
    tx = codec.decode(tx_bytes)
    if not tx.signatures:
        raise SignatureError("Transaction carries no signature.")
    sign_doc = codec.sign_doc_bytes(tx.body, tx.auth_info, chain_id, account_number)
    return recover_signer(sign_doc, tx.signatures[0])


def construct_signed_tx(
    signer,
    query_client,
    msg: Msg,
    *opts: TxBuilderOption,
    timeout: Optional[float] = None,
) -> bytes:
    """
    Refresh the signer's sequence, then build, sign and encode ``msg``.

    The refresh must happen before signing.  Callers sharing one signer
    must serialize calls to this function.

    Raises:
        SequenceQueryFailedError: If the account query fails.
        SigningFailedError: If the key is missing or signing fails.
    """
    try:
        signer.get_address()
    except NoSignerAddressError as exc:
        raise SigningFailedError(f"cannot sign without a usable key: {exc}") from exc

    # should be called first in order to make a valid tx
    signer.query_account_number(query_client, timeout=timeout)

    tx = signer.build_signed_tx(signer.new_tx_builder(*opts), msg)
    try:
        return signer.encode_tx(tx)
    except (TypeError, ValueError) as exc:
        raise SigningFailedError(f"failed to encode transaction: {exc}") from exc
