"""
CoreAccessor - verified state access against a consensus node.

Reads: the trusted root comes from a header source, the balance is queried
with a Merkle proof one height below that header, and the proof is
verified locally.  The node's answer is never taken on trust.

Writes: the message is validated locally, signed after a fresh sequence
query and broadcast.  A non-zero response code is returned to the caller
in ``TxResponse``, not raised.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Union

import httpx

from .config import DEFAULT_BOND_DENOM, AccessorConfig
from .errors import (
    HeaderUnavailableError,
    InvalidAmountError,
    InvalidHeightError,
    NoSignerAddressError,
    ProofVerificationFailedError,
    QueryFailedError,
    ValidationError,
)
from .pneuma.header import HeaderSource, RpcHeaderSource
from .pneuma.proof import ProofRuntime, verify_balance
from .pneuma.session import DEFAULT_TIMEOUT, CoreSession
from .pneuma.tx import (
    BroadcastMode,
    Msg,
    MsgBeginRedelegate,
    MsgCancelUnbondingDelegation,
    MsgDelegate,
    MsgPayForData,
    MsgSend,
    MsgUndelegate,
    construct_signed_tx,
    set_gas_limit,
)
from .sigil.address import AccAddress, ValAddress, as_acc_address, as_val_address
from .sigil.keyring import KeyringSigner
from .spec.models import Balance, Coin, Delegation, Redelegations, TxResponse, UnbondingDelegation
from .utils import unix_millis

BANK_STORE_KEY = "bank"
BALANCES_PREFIX = b"\x02"
NAMESPACE_ID_SIZE = 8

AddressLike = Union[AccAddress, str]
ValidatorLike = Union[ValAddress, str]


def account_balances_key(address: AccAddress, denom: str) -> bytes:
    """Bank store key of ``address``'s balance in ``denom``."""
    raw = address.to_bytes()
    return BALANCES_PREFIX + bytes([len(raw)]) + raw + denom.encode("utf-8")


def _check_amount(amount: object) -> int:
    if amount is None or isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError()
    return amount


def _check_gas_limit(gas_limit: object) -> int:
    if isinstance(gas_limit, bool) or not isinstance(gas_limit, int) or gas_limit < 0:
        raise ValidationError(f"gas limit must be a non-negative integer, got {gas_limit!r}")
    return gas_limit


class CoreAccessor:
    """Verified client for one node, signing with one key."""

    def __init__(
        self,
        signer: Optional[KeyringSigner],
        header_source: Optional[HeaderSource],
        core_ip: str,
        rpc_port: str | int,
        api_port: str | int,
        *,
        bond_denom: str = DEFAULT_BOND_DENOM,
        log: Optional[logging.Logger] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        proof_runtime: Optional[ProofRuntime] = None,
    ) -> None:
        self.signer = signer
        self.bond_denom = bond_denom
        self._log = log or logging.getLogger("aletheia.state")
        self._session = CoreSession(
            core_ip, rpc_port, api_port,
            timeout=timeout, transport=transport, log=self._log,
        )
        self.header_source: HeaderSource = header_source or RpcHeaderSource(
            lambda: self._session.abci_client
        )
        self._proof_runtime = proof_runtime

        # refresh-sequence -> sign -> broadcast must not interleave for one signer
        self._tx_lock = threading.Lock()
        self._metrics_lock = threading.Lock()
        self._last_pay_for_data = 0
        self._pay_for_data_count = 0

    @classmethod
    def from_config(
        cls,
        config: AccessorConfig,
        signer: Optional[KeyringSigner],
        header_source: Optional[HeaderSource] = None,
        **kwargs,
    ) -> "CoreAccessor":
        return cls(
            signer,
            header_source,
            config.core_ip,
            config.rpc_port,
            config.api_port,
            bond_denom=config.bond_denom,
            timeout=config.timeout,
            **kwargs,
        )

    # ============ Lifecycle ============

    @property
    def session(self) -> CoreSession:
        return self._session

    def start(self, timeout: Optional[float] = None) -> None:
        self._session.start(timeout=timeout)

    def stop(self) -> None:
        self._session.stop()

    def is_stopped(self) -> bool:
        return self._session.is_stopped()

    # ============ Addresses ============

    @property
    def account_prefix(self) -> str:
        return self.signer.account_prefix if self.signer is not None else AccAddress.default_prefix

    @property
    def validator_prefix(self) -> str:
        return self.account_prefix + "valoper"

    def account_address(self) -> AccAddress:
        if self.signer is None:
            raise NoSignerAddressError("no signer configured")
        return self.signer.get_address()

    def _validator(self, value: ValidatorLike) -> ValAddress:
        return as_val_address(value, self.validator_prefix)

    # ============ Balances ============

    def balance(self, timeout: Optional[float] = None) -> Balance:
        return self.balance_for_address(self.account_address(), timeout=timeout)

    def balance_for_address(self, address: AddressLike, timeout: Optional[float] = None) -> Balance:
        """
        Query and verify the bond-denom balance of ``address``.

        Raises:
            HeaderUnavailableError: If no usable header is available.
            QueryFailedError: If the query fails or the node rejects it.
            MalformedValueError: If the value is not an amount.
            ProofVerificationFailedError: If the proof does not match the trusted root.
        """
        address = as_acc_address(address, self.account_prefix)
        abci = self._session.abci_client

        head = self.header_source.head(timeout=timeout)
        if head.height < 2:
            raise HeaderUnavailableError(f"header at height {head.height} cannot anchor a proof")
        # the app hash in header H commits to the state after block H-1,
        # so the query has to target H-1 to be provable against it
        height = head.height - 1

        key = account_balances_key(address, self.bond_denom)
        result = abci.abci_query(f"store/{BANK_STORE_KEY}/key", key, height, prove=True, timeout=timeout)
        if not result.is_ok:
            raise QueryFailedError(
                f"balance query for {address} failed with code {result.code}: {result.log}",
                code=result.code,
                codespace=result.codespace,
            )
        if result.height and result.height != height:
            raise ProofVerificationFailedError(
                f"node answered for height {result.height}, requested {height}"
            )

        return verify_balance(
            result.value,
            result.proof_ops,
            head.app_hash,
            BANK_STORE_KEY,
            key,
            denom=self.bond_denom,
            runtime=self._proof_runtime,
            log=self._log,
        )

    # ============ Transactions ============

    def submit_tx(
        self,
        tx: bytes,
        mode: BroadcastMode = BroadcastMode.BLOCK,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        """Broadcast pre-signed transaction bytes.

        A non-zero ``TxResponse.code`` is returned as-is.
        """
        if not isinstance(tx, (bytes, bytearray)) or not tx:
            raise ValidationError("transaction must be non-empty signed bytes")
        response = self._session.query_client.broadcast_tx(bytes(tx), mode, timeout=timeout)
        if not response.is_ok:
            self._log.debug("tx %s returned code %d: %s", response.txhash, response.code, response.raw_log)
        return response

    def submit_tx_with_broadcast_mode(
        self,
        tx: bytes,
        mode: BroadcastMode,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        return self.submit_tx(tx, mode, timeout=timeout)

    def _sign_and_submit(self, msg: Msg, gas_limit: int, timeout: Optional[float]) -> TxResponse:
        with self._tx_lock:
            signed = construct_signed_tx(
                self.signer,
                self._session.query_client,
                msg,
                set_gas_limit(gas_limit),
                timeout=timeout,
            )
            return self.submit_tx(signed, timeout=timeout)

    def transfer(
        self,
        to: AddressLike,
        amount: int,
        gas_limit: int,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        amount = _check_amount(amount)
        gas_limit = _check_gas_limit(gas_limit)
        to = as_acc_address(to, self.account_prefix)
        sender = self.account_address()

        msg = MsgSend(str(sender), str(to), (Coin(self.bond_denom, amount),))
        return self._sign_and_submit(msg, gas_limit, timeout)

    def delegate(
        self,
        validator: ValidatorLike,
        amount: int,
        gas_limit: int,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        amount = _check_amount(amount)
        gas_limit = _check_gas_limit(gas_limit)
        validator = self._validator(validator)
        delegator = self.account_address()

        msg = MsgDelegate(str(delegator), str(validator), Coin(self.bond_denom, amount))
        return self._sign_and_submit(msg, gas_limit, timeout)

    def undelegate(
        self,
        validator: ValidatorLike,
        amount: int,
        gas_limit: int,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        amount = _check_amount(amount)
        gas_limit = _check_gas_limit(gas_limit)
        validator = self._validator(validator)
        delegator = self.account_address()

        msg = MsgUndelegate(str(delegator), str(validator), Coin(self.bond_denom, amount))
        return self._sign_and_submit(msg, gas_limit, timeout)

    def begin_redelegate(
        self,
        src_validator: ValidatorLike,
        dst_validator: ValidatorLike,
        amount: int,
        gas_limit: int,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        amount = _check_amount(amount)
        gas_limit = _check_gas_limit(gas_limit)
        src_validator = self._validator(src_validator)
        dst_validator = self._validator(dst_validator)
        delegator = self.account_address()

        msg = MsgBeginRedelegate(
            str(delegator), str(src_validator), str(dst_validator), Coin(self.bond_denom, amount)
        )
        return self._sign_and_submit(msg, gas_limit, timeout)

    def cancel_unbonding_delegation(
        self,
        validator: ValidatorLike,
        amount: int,
        height: int,
        gas_limit: int,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        amount = _check_amount(amount)
        if height is None or isinstance(height, bool) or not isinstance(height, int) or height < 0:
            raise InvalidHeightError(f"creation height must be a non-negative integer, got {height!r}")
        gas_limit = _check_gas_limit(gas_limit)
        validator = self._validator(validator)
        delegator = self.account_address()

        msg = MsgCancelUnbondingDelegation(
            str(delegator), str(validator), Coin(self.bond_denom, amount), height
        )
        return self._sign_and_submit(msg, gas_limit, timeout)

    def submit_pay_for_data(
        self,
        namespace_id: bytes,
        data: bytes,
        gas_limit: int,
        timeout: Optional[float] = None,
    ) -> TxResponse:
        """Pay for ``data`` to be published under ``namespace_id``.

        Only an accepted submission (code 0) updates ``last_pay_for_data``
        and ``pay_for_data_count``.
        """
        if not isinstance(namespace_id, (bytes, bytearray)) or len(namespace_id) != NAMESPACE_ID_SIZE:
            raise ValidationError(f"namespace id must be {NAMESPACE_ID_SIZE} bytes")
        if not isinstance(data, (bytes, bytearray)) or not data:
            raise ValidationError("data must be non-empty bytes")
        gas_limit = _check_gas_limit(gas_limit)
        sender = self.account_address()

        msg = MsgPayForData(str(sender), bytes(namespace_id), bytes(data))
        response = self._sign_and_submit(msg, gas_limit, timeout)
        # metrics should only be counted on a successful tx
        if response.is_ok:
            with self._metrics_lock:
                self._last_pay_for_data = max(self._last_pay_for_data, unix_millis())
                self._pay_for_data_count += 1
        return response

    @property
    def last_pay_for_data(self) -> int:
        """Unix milliseconds of the last accepted PayForData, 0 if none."""
        with self._metrics_lock:
            return self._last_pay_for_data

    @property
    def pay_for_data_count(self) -> int:
        with self._metrics_lock:
            return self._pay_for_data_count

    # ============ Staking queries ============

    def query_delegation(self, validator: ValidatorLike, timeout: Optional[float] = None) -> Delegation:
        validator = self._validator(validator)
        delegator = self.account_address()
        return self._session.staking_client.delegation(str(delegator), str(validator), timeout=timeout)

    def query_unbonding(self, validator: ValidatorLike, timeout: Optional[float] = None) -> UnbondingDelegation:
        validator = self._validator(validator)
        delegator = self.account_address()
        return self._session.staking_client.unbonding_delegation(
            str(delegator), str(validator), timeout=timeout
        )

    def query_redelegations(
        self,
        src_validator: ValidatorLike,
        dst_validator: ValidatorLike,
        timeout: Optional[float] = None,
    ) -> Redelegations:
        src_validator = self._validator(src_validator)
        dst_validator = self._validator(dst_validator)
        delegator = self.account_address()
        return self._session.staking_client.redelegations(
            str(delegator), str(src_validator), str(dst_validator), timeout=timeout
        )
