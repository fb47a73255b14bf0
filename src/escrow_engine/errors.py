"""Escrow engine error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    STATE = 0x04
    NETWORK = 0x06
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation (always local, never retried)
    ENCODING_ERROR = 0x0100
    INVALID_KEY_HASH = 0x0101
    INVALID_TX_ID = 0x0102
    INVALID_AMOUNT = 0x0104
    INVALID_FEE = 0x0105
    INVALID_TERMS = 0x0106
    INVALID_BLUEPRINT = 0x0107
    INVALID_ADDRESS = 0x0108

    # Authorization (policy rejections, surfaced before any network interaction)
    UNAUTHORIZED = 0x0200
    QUORUM_NOT_MET = 0x0201
    OUTSIDE_VALIDITY_WINDOW = 0x0202

    # State
    INVALID_TRANSITION = 0x0400
    CONFLICTING_SPEND = 0x0401
    INSTANCE_NOT_FOUND = 0x0402
    INSTANCE_EXISTS = 0x0403

    # Network (ledger collaborator)
    LEDGER_REJECTED = 0x0600
    LEDGER_UNAVAILABLE = 0x0601

    # Internal
    INTERNAL_ERROR = 0xFF00
    NOT_IMPLEMENTED = 0xFF01
    UNKNOWN = 0xFFFF


@dataclass(frozen=True)
class EscrowError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.code >> 8)


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__"))
_frozen_setattr = EscrowError.__setattr__


def _escrow_error_setattr(self: EscrowError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


EscrowError.__setattr__ = _escrow_error_setattr  # type: ignore[method-assign]


def err(code: ErrorCode, message: str) -> EscrowError:
    return EscrowError(code=code, message=message)
