"""
secp256k1 transaction signing.

The key is read from PRIVATE_KEY (hex), optionally seeded from
~/.aletheia/.env.  The account address is the 20-byte Ethereum-style
address of the key, rendered as bech32 with the configured account prefix.

The signer keeps a cache of the on-chain account number and sequence.  It
must be refreshed with ``query_account_number`` before every signing:
a stale sequence is rejected by the node, not locally.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..errors import (
    AccessorError,
    CanceledError,
    DeadlineExceededError,
    NoSignerAddressError,
    SequenceQueryFailedError,
    SigningFailedError,
)
from ..pneuma.tx import JsonTxCodec, Msg, SignedTx, TxBuilder, TxBuilderOption, TxCodec
from .address import DEFAULT_ACCOUNT_PREFIX, AccAddress
from .crypto import CryptoError, sign_bytes

logger = logging.getLogger(__name__)

# Default config directory
ALETHEIA_DIR = Path.home() / ".aletheia"
ALETHEIA_ENV = ALETHEIA_DIR / ".env"


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load private key from .env file or environment.

    Raises:
        ValueError: If PRIVATE_KEY is not set
    """
    env_path = env_path or ALETHEIA_ENV

    if env_path.exists():
        load_dotenv(env_path, override=True)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ValueError(f"PRIVATE_KEY not found. Set PRIVATE_KEY in {env_path}")

    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


class KeyringSigner:
    """Holds one private key and produces signed transaction bytes."""

    def __init__(
        self,
        private_key: Optional[str],
        chain_id: str,
        account_prefix: str = DEFAULT_ACCOUNT_PREFIX,
        codec: Optional[TxCodec] = None,
    ) -> None:
        self.chain_id = chain_id
        self.account_prefix = account_prefix
        self.codec: TxCodec = codec or JsonTxCodec()
        self._private_key = private_key
        self._account: Optional[LocalAccount] = None
        self.account_number: Optional[int] = None
        self.sequence: Optional[int] = None

    @classmethod
    def from_env(cls, chain_id: str, account_prefix: str = DEFAULT_ACCOUNT_PREFIX,
                 env_path: Optional[Path] = None) -> "KeyringSigner":
        return cls(load_private_key(env_path), chain_id, account_prefix)

    def _local_account(self) -> LocalAccount:
        if self._account is None:
            if not self._private_key:
                raise NoSignerAddressError("signer has no private key configured")
            try:
                self._account = Account.from_key(self._private_key)
            except (ValueError, TypeError) as exc:
                raise NoSignerAddressError(f"signer key is unusable: {exc}") from exc
        return self._account

    def get_address(self) -> AccAddress:
        account = self._local_account()
        return AccAddress(bytes.fromhex(account.address[2:]), prefix=self.account_prefix)

    def query_account_number(self, query_client, timeout: Optional[float] = None) -> None:
        """Refresh account number and sequence from the node."""
        address = self.get_address()
        try:
            info = query_client.account(str(address), timeout=timeout)
        except (CanceledError, DeadlineExceededError):
            raise
        except AccessorError as exc:
            raise SequenceQueryFailedError(f"failed to query account {address}: {exc}") from exc
        self.account_number = info.account_number
        self.sequence = info.sequence
        logger.debug("account %s: number=%d sequence=%d", address, info.account_number, info.sequence)

    def new_tx_builder(self, *opts: TxBuilderOption) -> TxBuilder:
        builder = TxBuilder()
        for opt in opts:
            opt(builder)
        return builder

    def build_signed_tx(self, builder: TxBuilder, msg: Msg) -> SignedTx:
        if self.account_number is None or self.sequence is None:
            raise SigningFailedError("account number and sequence must be queried before signing")

        address = self.get_address()
        body = builder.body([msg])
        auth_info = builder.auth_info(str(address), self.sequence)
        sign_doc = self.codec.sign_doc_bytes(body, auth_info, self.chain_id, self.account_number)
        try:
            signature = sign_bytes(sign_doc, self._private_key)
        except (CryptoError, ValueError, TypeError) as exc:
            raise SigningFailedError(f"failed to sign transaction: {exc}") from exc
        return SignedTx(body=body, auth_info=auth_info, signatures=(signature,))

    def encode_tx(self, tx: SignedTx) -> bytes:
        return self.codec.encode(tx)
