"""Lifecycle of a single escrow instance.

EMPTY --deposit--> FUNDED --release--> RELEASED
                          --refund---> REFUNDED
                          --cancel---> CANCELLED

Transitions never mutate the instance they are given; `apply` returns a new
instance. A failed transition leaves the caller's instance unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from .encoding import output_reference_to_data, validate_terms
from .errors import ErrorCode, EscrowError
from .policy import AuthorizationPolicy
from .types import (
    EscrowAction,
    EscrowInstance,
    EscrowState,
    EscrowTerms,
    OutputReference,
    RedeemerTag,
    ValidityInterval,
)

logger = logging.getLogger(__name__)

REDEEMER_FOR_ACTION = {
    EscrowAction.RELEASE: RedeemerTag.RELEASE,
    EscrowAction.REFUND: RedeemerTag.REFUND,
    EscrowAction.CANCEL: RedeemerTag.CANCEL,
}

TARGET_STATE = {
    EscrowAction.DEPOSIT: EscrowState.FUNDED,
    EscrowAction.RELEASE: EscrowState.RELEASED,
    EscrowAction.REFUND: EscrowState.REFUNDED,
    EscrowAction.CANCEL: EscrowState.CANCELLED,
}


@dataclass(frozen=True)
class TransitionRequest:
    action: EscrowAction
    signers: frozenset[bytes] = frozenset()
    validity: ValidityInterval = field(default_factory=ValidityInterval)
    # deposit only
    funding_ref: Optional[OutputReference] = None
    locked_value: int = 0
    # set once the ledger accepted the spending transaction
    spend_tx_id: Optional[bytes] = None

    @property
    def redeemer_tag(self) -> Optional[RedeemerTag]:
        return REDEEMER_FOR_ACTION.get(self.action)

    @property
    def target_state(self) -> EscrowState:
        return TARGET_STATE[self.action]


class TransitionResult:
    """Thin wrapper for verify/apply results."""

    def __init__(self, ok: bool, error: Optional[EscrowError] = None):
        self.ok = ok
        self.error = error

    @classmethod
    def success(cls) -> "TransitionResult":
        return cls(True, None)

    @classmethod
    def failure(cls, error: EscrowError) -> "TransitionResult":
        return cls(False, error)


def new_instance(terms: EscrowTerms) -> EscrowInstance:
    validate_terms(terms)
    return EscrowInstance(terms=terms)


# --- verify ---


def _verify_live(instance: EscrowInstance) -> None:
    if instance.conflicted:
        raise EscrowError(
            ErrorCode.CONFLICTING_SPEND,
            "funding input was consumed by another transaction; re-fetch instance state",
        )
    if instance.state.is_terminal:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, f"instance already {instance.state.value}")


def _verify_deposit(instance: EscrowInstance, request: TransitionRequest) -> None:
    if instance.state != EscrowState.EMPTY:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, f"cannot deposit into {instance.state.value} instance")
    validate_terms(instance.terms)
    if request.funding_ref is None:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, "deposit requires the funding output reference")
    output_reference_to_data(request.funding_ref)
    value = request.locked_value
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise EscrowError(ErrorCode.INVALID_AMOUNT, "locked value must be > 0")


def _verify_spend(instance: EscrowInstance, request: TransitionRequest) -> None:
    if instance.state != EscrowState.FUNDED:
        raise EscrowError(
            ErrorCode.INVALID_TRANSITION,
            f"{request.action.value} requires a funded instance, state is {instance.state.value}",
        )
    AuthorizationPolicy.from_terms(instance.terms).authorize(
        request.action, request.signers, request.validity
    )


def verify(instance: EscrowInstance, request: TransitionRequest) -> None:
    _verify_live(instance)
    if request.action == EscrowAction.DEPOSIT:
        _verify_deposit(instance, request)
    elif request.action in REDEEMER_FOR_ACTION:
        _verify_spend(instance, request)
    else:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, f"unsupported action: {request.action}")


# --- apply ---


def apply(instance: EscrowInstance, request: TransitionRequest) -> EscrowInstance:
    verify(instance, request)
    if request.action == EscrowAction.DEPOSIT:
        return replace(
            instance,
            state=EscrowState.FUNDED,
            funding_ref=request.funding_ref,
            locked_value=request.locked_value,
        )
    if request.spend_tx_id is None:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, "spend has not been accepted by the ledger yet")
    return replace(instance, state=request.target_state, spent_by=bytes(request.spend_tx_id))


def apply_transition(
    instance: EscrowInstance, request: TransitionRequest
) -> tuple[EscrowInstance, TransitionResult]:
    """Apply a transition, returning the unchanged instance on failure."""
    try:
        updated = apply(instance, request)
    except EscrowError as exc:
        return instance, TransitionResult.failure(exc)
    ref = instance.funding_ref or request.funding_ref
    logger.debug(f"Escrow {ref}: {instance.state.value} -> {updated.state.value}")
    return updated, TransitionResult.success()


# --- caller-facing helpers ---


def request_transition(
    instance: EscrowInstance,
    action: EscrowAction,
    signers: Iterable[bytes],
    validity: Optional[ValidityInterval] = None,
) -> TransitionRequest:
    """Validate a spend request without changing state."""
    if action == EscrowAction.DEPOSIT:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, "use record_deposit for deposits")
    request = TransitionRequest(
        action=action,
        signers=frozenset(bytes(s) for s in signers),
        validity=validity or ValidityInterval(),
    )
    verify(instance, request)
    return request


def record_deposit(instance: EscrowInstance, funding_ref: OutputReference, locked_value: int) -> EscrowInstance:
    request = TransitionRequest(
        action=EscrowAction.DEPOSIT, funding_ref=funding_ref, locked_value=locked_value
    )
    return apply(instance, request)


def record_spend(instance: EscrowInstance, request: TransitionRequest, spend_tx_id: bytes) -> EscrowInstance:
    updated = apply(instance, replace(request, spend_tx_id=spend_tx_id))
    logger.debug(f"Escrow {instance.funding_ref} spent by {bytes(spend_tx_id).hex()} ({request.action.value})")
    return updated


def record_conflict(instance: EscrowInstance) -> EscrowInstance:
    if instance.state == EscrowState.EMPTY:
        raise EscrowError(ErrorCode.INVALID_TRANSITION, "empty instance has no funding input to conflict on")
    logger.debug(f"Escrow {instance.funding_ref} marked conflicted")
    return replace(instance, conflicted=True)


class EscrowBook:
    """In-memory registry of instances keyed by funding reference.

    Once a reference is recorded as spent (or conflicted) the book refuses to
    build another transition for it, failing fast before a signing round.
    """

    def __init__(self) -> None:
        self._instances: dict[OutputReference, EscrowInstance] = {}
        self._spent: set[OutputReference] = set()

    def __contains__(self, ref: OutputReference) -> bool:
        return ref in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def instances(self) -> list[EscrowInstance]:
        return [self._instances[ref] for ref in sorted(self._instances)]

    def register(self, instance: EscrowInstance) -> None:
        ref = instance.funding_ref
        if ref is None or instance.state != EscrowState.FUNDED:
            raise EscrowError(ErrorCode.INVALID_TRANSITION, "only funded instances can be registered")
        if ref in self._spent:
            raise EscrowError(ErrorCode.CONFLICTING_SPEND, f"{ref} was already spent")
        if ref in self._instances:
            raise EscrowError(ErrorCode.INSTANCE_EXISTS, f"{ref} is already registered")
        self._instances[ref] = instance

    def get(self, ref: OutputReference) -> EscrowInstance:
        instance = self._instances.get(ref)
        if instance is None:
            raise EscrowError(ErrorCode.INSTANCE_NOT_FOUND, f"no escrow funded by {ref}")
        return instance

    def request(
        self,
        ref: OutputReference,
        action: EscrowAction,
        signers: Iterable[bytes],
        validity: Optional[ValidityInterval] = None,
    ) -> TransitionRequest:
        return request_transition(self.get(ref), action, signers, validity)

    def record_spend(self, ref: OutputReference, request: TransitionRequest, spend_tx_id: bytes) -> EscrowInstance:
        updated = record_spend(self.get(ref), request, spend_tx_id)
        self._instances[ref] = updated
        self._spent.add(ref)
        return updated

    def record_conflict(self, ref: OutputReference) -> EscrowInstance:
        updated = record_conflict(self.get(ref))
        self._instances[ref] = updated
        self._spent.add(ref)
        return updated
