"""Assemble abstract transaction plans for escrow transitions.

A plan lists exactly what the external wallet/ledger layer has to build: the
escrow input with its redeemer, the tagged payment outputs, the required
signer key hashes and, for deadline-guarded actions, the validity interval.
Planning is side-effect free; signing and submission happen elsewhere.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from .config import CANCEL_VALIDITY_MARGIN_MS, DEFAULT_VALIDITY_TTL_MS, MAX_BPS
from .encoding import encode_redeemer, encode_terms
from .errors import ErrorCode, EscrowError
from .policy import AuthorizationPolicy
from .state_machine import request_transition
from .tagging import tag_for
from .types import (
    DepositPlan,
    EscrowAction,
    EscrowInstance,
    EscrowState,
    NoValidator,
    TransactionPlan,
    TxInput,
    TxOutput,
    Validator,
    ValidatorRef,
    ValidityInterval,
)

logger = logging.getLogger(__name__)


def fee_split(locked_value: int, fee_percentage: int) -> tuple[int, int]:
    """Return (fee_amount, beneficiary_amount); the two always sum to locked_value."""
    if locked_value < 0:
        raise EscrowError(ErrorCode.INVALID_AMOUNT, "locked value must be >= 0")
    if fee_percentage < 0 or fee_percentage > MAX_BPS:
        raise EscrowError(ErrorCode.INVALID_FEE, f"fee_percentage must be in [0, {MAX_BPS}]")
    fee_amount = locked_value * fee_percentage // MAX_BPS
    return fee_amount, locked_value - fee_amount


def is_deadline_guarded(instance: EscrowInstance, action: EscrowAction) -> bool:
    return instance.terms.deadline is not None and action in (EscrowAction.RELEASE, EscrowAction.CANCEL)


class TransactionAssembler:
    """Builds deposit and spend plans against one validator."""

    def __init__(self, validator: ValidatorRef, address_book: Mapping[bytes, str]):
        if not isinstance(validator, (Validator, NoValidator)):
            raise EscrowError(ErrorCode.INVALID_BLUEPRINT, f"unsupported validator: {type(validator).__name__}")
        if isinstance(validator, Validator) and not validator.address:
            raise EscrowError(ErrorCode.INVALID_BLUEPRINT, "validator has no script address")
        self.validator = validator
        self.address_book = {bytes(k): v for k, v in address_book.items()}

    def _address(self, key_hash: bytes) -> str:
        address = self.address_book.get(bytes(key_hash))
        if not address:
            raise EscrowError(ErrorCode.INVALID_ADDRESS, f"no address known for key hash {bytes(key_hash).hex()}")
        return address

    # --- deposit ---

    def plan_deposit(self, instance: EscrowInstance, amount: int) -> DepositPlan:
        if instance.state != EscrowState.EMPTY:
            raise EscrowError(ErrorCode.INVALID_TRANSITION, f"cannot deposit into {instance.state.value} instance")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise EscrowError(ErrorCode.INVALID_AMOUNT, "deposit amount must be > 0")
        script_address = self.validator.address if isinstance(self.validator, Validator) else ""
        # Deposit outputs carry the datum only; tags exist for spend outputs.
        return DepositPlan(
            script_address=script_address,
            lovelace=amount,
            datum=encode_terms(instance.terms),
            validator=self.validator,
        )

    # --- spend ---

    def default_validity(
        self, instance: EscrowInstance, action: EscrowAction, now_ms: Optional[int]
    ) -> ValidityInterval:
        if not is_deadline_guarded(instance, action):
            return ValidityInterval()
        if now_ms is None:
            raise EscrowError(
                ErrorCode.OUTSIDE_VALIDITY_WINDOW, f"{action.value} is deadline-guarded; current time required"
            )
        deadline = instance.terms.deadline
        if action == EscrowAction.RELEASE:
            start = max(now_ms, deadline)
            return ValidityInterval(valid_from=start, valid_to=start + DEFAULT_VALIDITY_TTL_MS)
        upper = deadline - CANCEL_VALIDITY_MARGIN_MS
        if upper < now_ms:
            # inside the margin: last slot before the deadline
            upper = deadline - 1
        return ValidityInterval(valid_from=now_ms, valid_to=upper)

    def _outputs(self, instance: EscrowInstance, action: EscrowAction, tag: bytes) -> tuple[TxOutput, ...]:
        terms = instance.terms
        value = instance.locked_value
        if action != EscrowAction.RELEASE:
            return (TxOutput(self._address(terms.depositor), bytes(terms.depositor), value, tag),)

        recipient = terms.fee_policy.fee_recipient
        if recipient is None:
            return (TxOutput(self._address(terms.beneficiary), bytes(terms.beneficiary), value, tag),)

        fee_amount, beneficiary_amount = fee_split(value, terms.fee_policy.fee_percentage)
        outputs = [TxOutput(self._address(terms.beneficiary), bytes(terms.beneficiary), beneficiary_amount, tag)]
        if fee_amount > 0:
            outputs.append(TxOutput(self._address(recipient), bytes(recipient), fee_amount, tag))
        return tuple(outputs)

    def plan(
        self,
        instance: EscrowInstance,
        action: EscrowAction,
        signers: Iterable[bytes],
        now_ms: Optional[int] = None,
        validity: Optional[ValidityInterval] = None,
    ) -> TransactionPlan:
        proposed = frozenset(bytes(s) for s in signers)
        if validity is None:
            validity = self.default_validity(instance, action, now_ms)
        request = request_transition(instance, action, proposed, validity)

        tag = tag_for(instance.funding_ref)
        policy = AuthorizationPolicy.from_terms(instance.terms)
        plan = TransactionPlan(
            action=action,
            redeemer_tag=request.redeemer_tag,
            inputs=(
                TxInput(
                    ref=instance.funding_ref,
                    lovelace=instance.locked_value,
                    redeemer=encode_redeemer(request.redeemer_tag),
                ),
            ),
            outputs=self._outputs(instance, action, tag),
            required_signers=policy.required_signers(action, proposed),
            validity=validity if is_deadline_guarded(instance, action) else ValidityInterval(),
            validator=self.validator,
            output_tag=tag,
        )
        logger.debug(
            f"Planned {action.value} of {instance.funding_ref}: "
            f"{len(plan.outputs)} output(s), {len(plan.required_signers)} signer(s)"
        )
        return plan
