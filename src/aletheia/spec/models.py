"""
Typed views of node payloads.

Each ``from_dict`` validates the raw JSON against its schema before reading
it, so a malformed node response fails here rather than deep in a caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import ApplicationRejectedError
from .schemas import SCHEMA_NAMES, SchemaRegistry, SchemaValidationError


def _validated(payload: Any, kind: str, registry: SchemaRegistry | None) -> Any:
    registry = registry or SchemaRegistry.default()
    registry.validate_instance(payload, SCHEMA_NAMES[kind])
    return payload


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Coin":
        return cls(denom=payload["denom"], amount=int(payload["amount"]))

    def to_dict(self) -> dict[str, Any]:
        return {"denom": self.denom, "amount": str(self.amount)}


Balance = Coin


@dataclass(frozen=True)
class Header:
    height: int
    app_hash: bytes

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "Header":
        _validated(payload, "header", registry)
        return cls(height=int(payload["height"]), app_hash=bytes.fromhex(payload["app_hash"]))


@dataclass(frozen=True)
class AccountInfo:
    address: str
    account_number: int
    sequence: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "AccountInfo":
        account = _validated(payload, "account", registry)["account"]
        return cls(
            address=account["address"],
            account_number=int(account["account_number"]),
            sequence=int(account.get("sequence", "0")),
        )


@dataclass(frozen=True)
class TxResponse:
    """Result of a delivered transaction.

    ``code == 0`` means the node accepted it.  Any other code is an
    application-level rejection, returned rather than raised.
    """

    code: int
    txhash: str
    height: int = 0
    codespace: str = ""
    raw_log: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    data: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "TxResponse":
        tx = _validated(payload, "tx_response", registry)["tx_response"]
        return cls(
            code=int(tx.get("code", 0)),
            txhash=tx.get("txhash", ""),
            height=int(tx.get("height", "0")),
            codespace=tx.get("codespace", ""),
            raw_log=tx.get("raw_log", ""),
            gas_wanted=int(tx.get("gas_wanted", "0")),
            gas_used=int(tx.get("gas_used", "0")),
            data=tx.get("data", ""),
            raw=tx,
        )

    @property
    def is_ok(self) -> bool:
        return self.code == 0

    def raise_for_code(self) -> "TxResponse":
        if self.code != 0:
            raise ApplicationRejectedError(
                f"transaction {self.txhash} rejected with code {self.code}: {self.raw_log}",
                code=self.code,
                codespace=self.codespace,
                txhash=self.txhash,
            )
        return self


@dataclass(frozen=True)
class Delegation:
    delegator_address: str
    validator_address: str
    shares: str
    balance: Coin

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "Delegation":
        resp = _validated(payload, "delegation", registry)["delegation_response"]
        return cls(
            delegator_address=resp["delegation"]["delegator_address"],
            validator_address=resp["delegation"]["validator_address"],
            shares=resp["delegation"]["shares"],
            balance=Coin.from_dict(resp["balance"]),
        )


@dataclass(frozen=True)
class UnbondingEntry:
    creation_height: int
    completion_time: str
    initial_balance: int
    balance: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UnbondingEntry":
        return cls(
            creation_height=int(payload["creation_height"]),
            completion_time=payload["completion_time"],
            initial_balance=int(payload["initial_balance"]),
            balance=int(payload["balance"]),
        )


@dataclass(frozen=True)
class UnbondingDelegation:
    delegator_address: str
    validator_address: str
    entries: tuple[UnbondingEntry, ...]

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "UnbondingDelegation":
        unbond = _validated(payload, "unbonding", registry)["unbond"]
        return cls(
            delegator_address=unbond["delegator_address"],
            validator_address=unbond["validator_address"],
            entries=tuple(UnbondingEntry.from_dict(e) for e in unbond.get("entries", [])),
        )


@dataclass(frozen=True)
class RedelegationEntry:
    creation_height: int
    completion_time: str
    initial_balance: int
    shares_dst: str
    balance: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RedelegationEntry":
        entry = payload["redelegation_entry"]
        return cls(
            creation_height=int(entry["creation_height"]),
            completion_time=entry["completion_time"],
            initial_balance=int(entry["initial_balance"]),
            shares_dst=entry["shares_dst"],
            balance=int(payload["balance"]),
        )


@dataclass(frozen=True)
class Redelegation:
    delegator_address: str
    validator_src_address: str
    validator_dst_address: str
    entries: tuple[RedelegationEntry, ...]

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Redelegation":
        redelegation = payload["redelegation"]
        return cls(
            delegator_address=redelegation["delegator_address"],
            validator_src_address=redelegation["validator_src_address"],
            validator_dst_address=redelegation["validator_dst_address"],
            entries=tuple(RedelegationEntry.from_dict(e) for e in payload.get("entries", [])),
        )


@dataclass(frozen=True)
class Redelegations:
    redelegations: tuple[Redelegation, ...]
    next_key: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any], registry: SchemaRegistry | None = None) -> "Redelegations":
        _validated(payload, "redelegations", registry)
        pagination = payload.get("pagination") or {}
        return cls(
            redelegations=tuple(Redelegation.from_dict(r) for r in payload["redelegation_responses"]),
            next_key=pagination.get("next_key"),
        )


__all__ = [
    "AccountInfo",
    "Balance",
    "Coin",
    "Delegation",
    "Header",
    "Redelegation",
    "RedelegationEntry",
    "Redelegations",
    "SchemaValidationError",
    "TxResponse",
    "UnbondingDelegation",
    "UnbondingEntry",
]
