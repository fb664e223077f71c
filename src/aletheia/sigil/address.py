"""
Account and validator addresses.

Both are 20 raw bytes rendered as bech32 strings.  The byte payload is the
identity: two addresses are equal iff they are the same kind and carry the
same bytes.  The prefix only affects rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, TypeVar, Type, Union

import bech32

from ..errors import InvalidAddressError

ADDRESS_LENGTH = 20

DEFAULT_ACCOUNT_PREFIX = "celestia"
DEFAULT_VALIDATOR_PREFIX = "celestiavaloper"

_A = TypeVar("_A", bound="_Bech32Address")


@dataclass(frozen=True)
class _Bech32Address:
    raw: bytes
    prefix: str = field(default="", compare=False)

    default_prefix: ClassVar[str] = ""

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise InvalidAddressError(f"address payload must be bytes, got {type(self.raw).__name__}")
        if len(self.raw) != ADDRESS_LENGTH:
            raise InvalidAddressError(
                f"address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}"
            )
        object.__setattr__(self, "raw", bytes(self.raw))
        if not self.prefix:
            object.__setattr__(self, "prefix", self.default_prefix)

    @classmethod
    def from_bech32(cls: Type[_A], value: str, prefix: str | None = None) -> _A:
        expected = prefix or cls.default_prefix
        hrp, data = bech32.bech32_decode(value)
        if hrp is None or data is None:
            raise InvalidAddressError(f"invalid bech32 address: {value!r}")
        if hrp != expected:
            raise InvalidAddressError(f"expected prefix {expected!r}, got {hrp!r}")
        decoded = bech32.convertbits(data, 5, 8, False)
        if decoded is None:
            raise InvalidAddressError(f"invalid bech32 payload: {value!r}")
        return cls(bytes(decoded), prefix=hrp)

    def to_bytes(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return bech32.bech32_encode(self.prefix, bech32.convertbits(self.raw, 8, 5))


@dataclass(frozen=True)
class AccAddress(_Bech32Address):
    default_prefix: ClassVar[str] = DEFAULT_ACCOUNT_PREFIX


@dataclass(frozen=True)
class ValAddress(_Bech32Address):
    default_prefix: ClassVar[str] = DEFAULT_VALIDATOR_PREFIX


def as_acc_address(value: Union[AccAddress, str], prefix: str | None = None) -> AccAddress:
    if isinstance(value, AccAddress):
        return value
    if isinstance(value, str):
        return AccAddress.from_bech32(value, prefix)
    raise InvalidAddressError(f"not an account address: {value!r}")


def as_val_address(value: Union[ValAddress, str], prefix: str | None = None) -> ValAddress:
    if isinstance(value, ValAddress):
        return value
    if isinstance(value, str):
        return ValAddress.from_bech32(value, prefix)
    raise InvalidAddressError(f"not a validator address: {value!r}")
