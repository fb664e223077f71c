__all__ = [
    # Accessor
    "CoreAccessor",
    "AccessorConfig",
    "account_balances_key",
    # Session
    "CoreSession",
    # Transactions
    "BroadcastMode",
    "JsonTxCodec",
    "MsgBeginRedelegate",
    "MsgCancelUnbondingDelegation",
    "MsgDelegate",
    "MsgPayForData",
    "MsgSend",
    "MsgUndelegate",
    "TxBuilder",
    "construct_signed_tx",
    "set_fee_amount",
    "set_gas_limit",
    "set_memo",
    "verify_tx_signature",
    # Proofs
    "ProofOp",
    "ProofRuntime",
    "default_proof_runtime",
    "key_path",
    "verify_balance",
    # Headers
    "HeaderSource",
    "RpcHeaderSource",
    "StaticHeaderSource",
    # Signer
    "AccAddress",
    "ValAddress",
    "KeyringSigner",
    "load_private_key",
    # Models
    "Balance",
    "Coin",
    "Delegation",
    "Header",
    "Redelegations",
    "TxResponse",
    "UnbondingDelegation",
    # Errors
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

from .errors import (
    AccessorError,
    AlreadyConnectedError,
    ApplicationRejectedError,
    BroadcastFailedError,
    CanceledError,
    CoreConnectionError,
    DeadlineExceededError,
    HeaderUnavailableError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidHeightError,
    MalformedValueError,
    NoSignerAddressError,
    NotConnectedError,
    ProofVerificationFailedError,
    QueryFailedError,
    SequenceQueryFailedError,
    SigningFailedError,
    ValidationError,
)
from .spec.models import Balance, Coin, Delegation, Header, Redelegations, TxResponse, UnbondingDelegation
from .sigil.address import AccAddress, ValAddress
from .sigil.keyring import KeyringSigner, load_private_key
from .pneuma.tx import (
    BroadcastMode,
    JsonTxCodec,
    MsgBeginRedelegate,
    MsgCancelUnbondingDelegation,
    MsgDelegate,
    MsgPayForData,
    MsgSend,
    MsgUndelegate,
    TxBuilder,
    construct_signed_tx,
    set_fee_amount,
    set_gas_limit,
    set_memo,
    verify_tx_signature,
)
from .pneuma.proof import ProofOp, ProofRuntime, default_proof_runtime, key_path, verify_balance
from .pneuma.header import HeaderSource, RpcHeaderSource, StaticHeaderSource
from .pneuma.session import CoreSession
from .config import AccessorConfig
from .state import CoreAccessor, account_balances_key
