"""
Accessor error taxonomy.

Every failure surfaces to the caller as a subclass of ``AccessorError``.
``exit_code`` lets a host process map failures to process exit codes.

A non-zero response code on a delivered transaction is NOT an error: it is
returned inside ``TxResponse``. ``ApplicationRejectedError`` only exists for
callers that opt in via ``TxResponse.raise_for_code()``.
"""

from __future__ import annotations

from typing import Optional


class AccessorError(RuntimeError):
    exit_code: int = 1


class CoreConnectionError(AccessorError):
    exit_code = 2


class AlreadyConnectedError(AccessorError):
    exit_code = 2


class NotConnectedError(AccessorError):
    exit_code = 2


class ValidationError(AccessorError, ValueError):
    exit_code = 3


class InvalidAmountError(ValidationError):
    def __init__(self, message: str = "amount must be greater than zero") -> None:
        super().__init__(message)


class InvalidHeightError(ValidationError):
    pass


class InvalidAddressError(ValidationError):
    pass


class NoSignerAddressError(AccessorError):
    exit_code = 4


class SequenceQueryFailedError(AccessorError):
    exit_code = 5


class SigningFailedError(AccessorError):
    exit_code = 5


class QueryFailedError(AccessorError):
    exit_code = 6

    def __init__(self, message: str, code: Optional[int] = None, codespace: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.codespace = codespace


class HeaderUnavailableError(QueryFailedError):
    pass


class BroadcastFailedError(AccessorError):
    exit_code = 6


class MalformedValueError(AccessorError):
    exit_code = 7


class ProofVerificationFailedError(AccessorError):
    exit_code = 8


class CanceledError(AccessorError):
    exit_code = 9


class DeadlineExceededError(AccessorError, TimeoutError):
    exit_code = 9


class ApplicationRejectedError(AccessorError):
    exit_code = 10

    def __init__(self, message: str, code: int, codespace: str = "", txhash: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.codespace = codespace
        self.txhash = txhash


__all__ = [
    "AccessorError",
    "AlreadyConnectedError",
    "ApplicationRejectedError",
    "BroadcastFailedError",
    "CanceledError",
    "CoreConnectionError",
    "DeadlineExceededError",
    "HeaderUnavailableError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidHeightError",
    "MalformedValueError",
    "NoSignerAddressError",
    "NotConnectedError",
    "ProofVerificationFailedError",
    "QueryFailedError",
    "SequenceQueryFailedError",
    "SigningFailedError",
    "ValidationError",
]
