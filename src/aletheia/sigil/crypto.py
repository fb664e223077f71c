"""
Signing primitives for transaction sign documents.

- RFC 8785 JSON Canonicalization for deterministic sign bytes
- ECDSA/secp256k1 signatures (EIP-191 personal_sign) via eth-account
"""

from __future__ import annotations

from typing import Any

import rfc8785
from eth_account import Account
from eth_account.messages import encode_defunct


class CryptoError(ValueError):
    pass


class SignatureError(CryptoError):
    pass


def canonical_json(payload: Any) -> bytes:
    """Canonicalize a JSON-compatible payload using RFC 8785 JCS."""
    return rfc8785.dumps(payload)


def sign_bytes(data: bytes, private_key_hex: str) -> bytes:
    """Sign ``data`` with ECDSA/secp256k1 (EIP-191 personal_sign).

    Returns:
        65-byte signature (r + s + v)
    """
    account = Account.from_key(private_key_hex)
    signable = encode_defunct(primitive=data)
    signed = account.sign_message(signable)
    return bytes(signed.signature)


def recover_signer(data: bytes, signature: bytes) -> bytes:
    """Recover the 20-byte signer address that produced ``signature`` over ``data``.

    Raises:
        SignatureError: If the signature cannot be recovered.
    """
    signable = encode_defunct(primitive=data)
    try:
        recovered = Account.recover_message(signable, signature=signature)
    except Exception as exc:
        raise SignatureError("Invalid signature.") from exc
    return bytes.fromhex(recovered.removeprefix("0x"))
