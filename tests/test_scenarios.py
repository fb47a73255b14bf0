"""End-to-end escrow scenarios: deposit, plan, ledger acceptance, record.

Mirrors the five flows the escrow is deployed for: a time-locked release, a
2-of-3 multisig release, an authorized refund, a depositor cancel before the
deadline and a release that splits off a service fee.
"""

from __future__ import annotations

from escrow_engine.address import validator_from_blueprint
from escrow_engine.assembler import TransactionAssembler
from escrow_engine.config import (
    CANCEL_BUFFER_MS,
    CANCEL_VALIDITY_MARGIN_MS,
    LOVELACE_PER_ADA,
    NETWORK_PREVIEW,
    TIMELOCK_BUFFER_MS,
)
from escrow_engine.errors import ErrorCode
from escrow_engine.state_machine import EscrowBook, new_instance, record_deposit
from escrow_engine.tagging import compute_tag
from escrow_engine.test_accounts import ADDRESS_BOOK, AUTHORIZED, BENEFICIARY, DEPOSITOR
from escrow_engine.types import EscrowAction, EscrowState, EscrowTerms, FeePolicy, OutputReference

BLUEPRINT = {
    "preamble": {"title": "escrow", "plutusVersion": "v3"},
    "validators": [{"title": "escrow.escrow.spend", "compiledCode": "4e4d01000033222220051200120011"}],
}
VALIDATOR = validator_from_blueprint(BLUEPRINT, NETWORK_PREVIEW)
ASSEMBLER = TransactionAssembler(VALIDATOR, ADDRESS_BOOK)

NOW = 1_735_689_600_000
DEPOSIT_TX = bytes.fromhex("d0" * 32)
SPEND_TX = bytes.fromhex("e0" * 32)
FIVE_ADA = 5 * LOVELACE_PER_ADA


def _deposit(terms: EscrowTerms, index: int = 0):
    instance = new_instance(terms)
    deposit = ASSEMBLER.plan_deposit(instance, FIVE_ADA)
    assert deposit.script_address == VALIDATOR.address
    return record_deposit(instance, OutputReference(DEPOSIT_TX, index), FIVE_ADA)


def _terms(**kwargs) -> EscrowTerms:
    base = dict(depositor=DEPOSITOR, beneficiary=BENEFICIARY, deadline=None, fee_policy=FeePolicy())
    base.update(kwargs)
    return EscrowTerms(**base)


def test_time_locked_release(plan_test_group) -> None:
    deadline = NOW + TIMELOCK_BUFFER_MS
    instance = _deposit(_terms(deadline=deadline, required_signatures=1, authorized_keys=(BENEFICIARY,)))

    plan, error = plan_test_group(
        "scenarios/time_lock.json", "release_after_deadline", ASSEMBLER, instance,
        EscrowAction.RELEASE, [BENEFICIARY], now_ms=deadline + 1000,
    )
    assert error is None
    assert plan.validity.valid_from == deadline + 1000
    assert plan.required_signers == (BENEFICIARY,)
    assert [(o.key_hash, o.lovelace) for o in plan.outputs] == [(BENEFICIARY, FIVE_ADA)]

    _, error = plan_test_group(
        "scenarios/time_lock.json", "release_by_depositor", ASSEMBLER, instance,
        EscrowAction.RELEASE, [DEPOSITOR], now_ms=deadline + 1000,
    )
    assert error.code == ErrorCode.UNAUTHORIZED


def test_multisig_release(plan_test_group) -> None:
    instance = _deposit(
        _terms(required_signatures=2, authorized_keys=(DEPOSITOR, BENEFICIARY, AUTHORIZED)), index=1
    )
    plan, error = plan_test_group(
        "scenarios/multisig.json", "release_2_of_3", ASSEMBLER, instance,
        EscrowAction.RELEASE, [AUTHORIZED, DEPOSITOR],
    )
    assert error is None
    assert plan.required_signers == (DEPOSITOR, AUTHORIZED)
    assert plan.outputs[0].key_hash == BENEFICIARY

    _, error = plan_test_group(
        "scenarios/multisig.json", "release_1_of_3", ASSEMBLER, instance,
        EscrowAction.RELEASE, [AUTHORIZED],
    )
    assert error.code == ErrorCode.QUORUM_NOT_MET


def test_authorized_refund(plan_test_group) -> None:
    instance = _deposit(_terms(required_signatures=2, authorized_keys=(DEPOSITOR, AUTHORIZED)), index=2)
    plan, error = plan_test_group(
        "scenarios/refund.json", "refund_2_of_2", ASSEMBLER, instance,
        EscrowAction.REFUND, [DEPOSITOR, AUTHORIZED],
    )
    assert error is None
    assert [(o.key_hash, o.lovelace) for o in plan.outputs] == [(DEPOSITOR, FIVE_ADA)]
    assert plan.validity.is_unbounded


def test_depositor_cancel(plan_test_group) -> None:
    deadline = NOW + CANCEL_BUFFER_MS
    instance = _deposit(
        _terms(deadline=deadline, required_signatures=1, authorized_keys=(BENEFICIARY,)), index=3
    )
    plan, error = plan_test_group(
        "scenarios/cancel.json", "cancel_before_deadline", ASSEMBLER, instance,
        EscrowAction.CANCEL, [DEPOSITOR], now_ms=NOW,
    )
    assert error is None
    assert plan.validity.valid_to == deadline - CANCEL_VALIDITY_MARGIN_MS
    assert plan.required_signers == (DEPOSITOR,)
    assert [(o.key_hash, o.lovelace) for o in plan.outputs] == [(DEPOSITOR, FIVE_ADA)]

    _, error = plan_test_group(
        "scenarios/cancel.json", "cancel_after_deadline", ASSEMBLER, instance,
        EscrowAction.CANCEL, [DEPOSITOR], now_ms=deadline,
    )
    assert error.code == ErrorCode.OUTSIDE_VALIDITY_WINDOW


def test_fee_based_release(plan_test_group) -> None:
    instance = _deposit(
        _terms(
            required_signatures=1,
            authorized_keys=(AUTHORIZED, BENEFICIARY),
            fee_policy=FeePolicy(fee_percentage=2000, fee_recipient=AUTHORIZED),
        ),
        index=4,
    )
    plan, error = plan_test_group(
        "scenarios/fee.json", "release_with_fee", ASSEMBLER, instance,
        EscrowAction.RELEASE, [AUTHORIZED],
    )
    assert error is None
    assert [(o.key_hash, o.lovelace) for o in plan.outputs] == [
        (BENEFICIARY, 4 * LOVELACE_PER_ADA),
        (AUTHORIZED, 1 * LOVELACE_PER_ADA),
    ]
    assert sum(o.lovelace for o in plan.outputs) == FIVE_ADA


def test_end_to_end_release() -> None:
    book = EscrowBook()
    instance = _deposit(_terms(required_signatures=1, authorized_keys=(BENEFICIARY,)), index=5)
    book.register(instance)
    assert book.get(instance.funding_ref).state == EscrowState.FUNDED

    plan = ASSEMBLER.plan(instance, EscrowAction.RELEASE, [BENEFICIARY])
    assert plan.output_tag == compute_tag(DEPOSIT_TX, 5)

    request = book.request(instance.funding_ref, EscrowAction.RELEASE, [BENEFICIARY])
    released = book.record_spend(instance.funding_ref, request, SPEND_TX)
    assert released.state == EscrowState.RELEASED
    assert released.spent_by == SPEND_TX
