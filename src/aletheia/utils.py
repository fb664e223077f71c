from __future__ import annotations

import base64
import hashlib
import time


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str | None) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value, validate=True)


def uvarint(n: int) -> bytes:
    """Encode a non-negative integer as an unsigned LEB128 varint."""
    if n < 0:
        raise ValueError(f"uvarint requires a non-negative integer, got {n}")
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def unix_millis() -> int:
    return time.time_ns() // 1_000_000
