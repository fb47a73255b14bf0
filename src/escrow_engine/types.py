"""Core types for the escrow engine.

The engine tracks a single escrow UTXO at a time: the datum terms committed at
deposit, the output reference the deposit produced, and which of the mutually
exclusive spend transitions (if any) consumed it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union

from .config import REDEEMER_CANCEL, REDEEMER_REFUND, REDEEMER_RELEASE


class RedeemerTag(IntEnum):
    RELEASE = REDEEMER_RELEASE
    REFUND = REDEEMER_REFUND
    CANCEL = REDEEMER_CANCEL


class EscrowState(Enum):
    EMPTY = "empty"
    FUNDED = "funded"
    RELEASED = "released"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    EscrowState.RELEASED,
    EscrowState.REFUNDED,
    EscrowState.CANCELLED,
})


class EscrowAction(Enum):
    DEPOSIT = "deposit"
    RELEASE = "release"
    REFUND = "refund"
    CANCEL = "cancel"


class Role(Enum):
    DEPOSITOR = "depositor"
    BENEFICIARY = "beneficiary"
    AUTHORIZED = "authorized"
    FEE_RECIPIENT = "fee_recipient"


@dataclass(frozen=True)
class FeePolicy:
    fee_percentage: int = 0  # basis points, 10_000 = 100%
    fee_recipient: Optional[bytes] = None


@dataclass(frozen=True)
class EscrowTerms:
    depositor: bytes
    beneficiary: bytes
    deadline: Optional[int]
    required_signatures: int
    authorized_keys: tuple[bytes, ...]
    fee_policy: FeePolicy = field(default_factory=FeePolicy)


@dataclass(frozen=True, order=True)
class OutputReference:
    tx_id: bytes
    output_index: int

    def __str__(self) -> str:
        return f"{self.tx_id.hex()}#{self.output_index}"

    @classmethod
    def parse(cls, text: str) -> "OutputReference":
        tx_hex, sep, index = text.partition("#")
        if not sep:
            raise ValueError(f"output reference must be '<txid>#<index>': {text!r}")
        return cls(tx_id=bytes.fromhex(tx_hex), output_index=int(index))


@dataclass(frozen=True)
class ValidityInterval:
    valid_from: Optional[int] = None
    valid_to: Optional[int] = None

    @property
    def is_unbounded(self) -> bool:
        return self.valid_from is None and self.valid_to is None


@dataclass(frozen=True)
class EscrowInstance:
    terms: EscrowTerms
    state: EscrowState = EscrowState.EMPTY
    funding_ref: Optional[OutputReference] = None
    locked_value: int = 0
    spent_by: Optional[bytes] = None
    conflicted: bool = False


# --- Validator variants ---


@dataclass(frozen=True)
class NoValidator:
    """No compiled script available; plans are built but cannot be submitted."""


@dataclass(frozen=True)
class Validator:
    script: str  # compiledCode hex from the blueprint
    address: str
    script_hash: bytes = b""
    plutus_version: int = 3


ValidatorRef = Union[NoValidator, Validator]


# --- Transaction plans ---


@dataclass(frozen=True)
class TxInput:
    ref: OutputReference
    lovelace: int
    redeemer: bytes


@dataclass(frozen=True)
class TxOutput:
    address: str
    key_hash: bytes
    lovelace: int
    inline_datum: Optional[bytes] = None


@dataclass(frozen=True)
class TransactionPlan:
    action: EscrowAction
    redeemer_tag: RedeemerTag
    inputs: tuple[TxInput, ...]
    outputs: tuple[TxOutput, ...]
    required_signers: tuple[bytes, ...]
    validity: ValidityInterval
    validator: ValidatorRef
    output_tag: bytes

    @property
    def is_submittable(self) -> bool:
        return isinstance(self.validator, Validator)


@dataclass(frozen=True)
class DepositPlan:
    script_address: str
    lovelace: int
    datum: bytes
    validator: ValidatorRef

    @property
    def is_submittable(self) -> bool:
        return isinstance(self.validator, Validator)


# --- Ledger collaborator ---


class LookupStatus(Enum):
    FOUND = "found"
    NOT_YET_VISIBLE = "not_yet_visible"
    GAVE_UP = "gave_up"


@dataclass(frozen=True)
class Utxo:
    ref: OutputReference
    address: str
    lovelace: int
    inline_datum: Optional[str] = None


@dataclass(frozen=True)
class UtxoLookup:
    status: LookupStatus
    attempts: int
    utxo: Optional[Utxo] = None
