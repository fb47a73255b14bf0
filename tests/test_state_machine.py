"""Escrow lifecycle fixtures: deposit, the three spends, and conflicts."""

from __future__ import annotations

import pytest

from escrow_engine.errors import ErrorCode, EscrowError
from escrow_engine.state_machine import (
    EscrowBook,
    TransitionRequest,
    apply,
    new_instance,
    record_conflict,
    record_deposit,
    record_spend,
    request_transition,
)
from escrow_engine.test_accounts import AUTHORIZED, BENEFICIARY, CAROL, DEPOSITOR, MALLORY
from escrow_engine.types import (
    EscrowAction,
    EscrowInstance,
    EscrowState,
    EscrowTerms,
    OutputReference,
    RedeemerTag,
    ValidityInterval,
)

FUNDING = OutputReference(bytes.fromhex("11" * 32), 0)
SPEND_TX = bytes.fromhex("22" * 32)
OTHER_TX = bytes.fromhex("33" * 32)
DEADLINE = 1_700_000_000_000
FIVE_ADA = 5_000_000


def _terms(deadline=None) -> EscrowTerms:
    return EscrowTerms(
        depositor=DEPOSITOR,
        beneficiary=BENEFICIARY,
        deadline=deadline,
        required_signatures=1,
        authorized_keys=(BENEFICIARY, AUTHORIZED),
    )


def _funded(deadline=None) -> EscrowInstance:
    return record_deposit(new_instance(_terms(deadline)), FUNDING, FIVE_ADA)


def _spend(action: EscrowAction, signers, validity=None) -> TransitionRequest:
    return TransitionRequest(
        action=action,
        signers=frozenset(signers),
        validity=validity or ValidityInterval(),
        spend_tx_id=SPEND_TX,
    )


def _code(fn, *args) -> ErrorCode:
    with pytest.raises(EscrowError) as exc:
        fn(*args)
    return exc.value.code


# ===================================================================
# Deposit
# ===================================================================


def test_deposit_funds_instance(state_test_group) -> None:
    pre = new_instance(_terms())
    request = TransitionRequest(action=EscrowAction.DEPOSIT, funding_ref=FUNDING, locked_value=FIVE_ADA)
    post, result = state_test_group("lifecycle/deposit.json", "deposit_ok", pre, request)
    assert result.ok
    assert post.state == EscrowState.FUNDED
    assert post.funding_ref == FUNDING
    assert post.locked_value == FIVE_ADA
    assert pre.state == EscrowState.EMPTY


def test_deposit_zero_amount(state_test_group) -> None:
    pre = new_instance(_terms())
    request = TransitionRequest(action=EscrowAction.DEPOSIT, funding_ref=FUNDING, locked_value=0)
    post, result = state_test_group("lifecycle/deposit.json", "deposit_zero_amount", pre, request)
    assert not result.ok
    assert result.error.code == ErrorCode.INVALID_AMOUNT
    assert post is pre


def test_deposit_requires_funding_ref() -> None:
    request = TransitionRequest(action=EscrowAction.DEPOSIT, locked_value=FIVE_ADA)
    assert _code(apply, new_instance(_terms()), request) == ErrorCode.INVALID_TRANSITION


def test_deposit_twice_rejected(state_test_group) -> None:
    request = TransitionRequest(action=EscrowAction.DEPOSIT, funding_ref=FUNDING, locked_value=FIVE_ADA)
    _, result = state_test_group("lifecycle/deposit.json", "deposit_into_funded", _funded(), request)
    assert result.error.code == ErrorCode.INVALID_TRANSITION


def test_new_instance_validates_terms() -> None:
    bad = EscrowTerms(
        depositor=DEPOSITOR,
        beneficiary=BENEFICIARY,
        deadline=None,
        required_signatures=3,
        authorized_keys=(AUTHORIZED,),
    )
    assert _code(new_instance, bad) == ErrorCode.INVALID_TERMS


# ===================================================================
# Spends from EMPTY are illegal
# ===================================================================


@pytest.mark.parametrize("action", [EscrowAction.RELEASE, EscrowAction.REFUND, EscrowAction.CANCEL])
def test_spend_from_empty_rejected(state_test_group, action: EscrowAction) -> None:
    pre = new_instance(_terms())
    _, result = state_test_group(
        "lifecycle/empty.json", f"{action.value}_from_empty", pre, _spend(action, [DEPOSITOR, BENEFICIARY])
    )
    assert result.error.code == ErrorCode.INVALID_TRANSITION


# ===================================================================
# Exactly one spend succeeds
# ===================================================================


@pytest.mark.parametrize(
    "action,signers,target",
    [
        (EscrowAction.RELEASE, [BENEFICIARY], EscrowState.RELEASED),
        (EscrowAction.REFUND, [AUTHORIZED], EscrowState.REFUNDED),
        (EscrowAction.CANCEL, [DEPOSITOR], EscrowState.CANCELLED),
    ],
)
def test_spend_is_terminal(state_test_group, action, signers, target) -> None:
    post, result = state_test_group(
        "lifecycle/spend.json", f"{action.value}_ok", _funded(), _spend(action, signers)
    )
    assert result.ok
    assert post.state == target
    assert post.spent_by == SPEND_TX
    assert post.state.is_terminal

    for other in (EscrowAction.RELEASE, EscrowAction.REFUND, EscrowAction.CANCEL):
        again, second = state_test_group(
            "lifecycle/spend.json",
            f"{other.value}_after_{action.value}",
            post,
            _spend(other, [DEPOSITOR, BENEFICIARY, AUTHORIZED]),
        )
        assert second.error.code == ErrorCode.INVALID_TRANSITION
        assert again is post


def test_spend_needs_ledger_acceptance() -> None:
    request = TransitionRequest(action=EscrowAction.RELEASE, signers=frozenset([BENEFICIARY]))
    assert _code(apply, _funded(), request) == ErrorCode.INVALID_TRANSITION


def test_unauthorized_spend_leaves_instance(state_test_group) -> None:
    pre = _funded()
    post, result = state_test_group(
        "lifecycle/spend.json", "release_by_mallory", pre, _spend(EscrowAction.RELEASE, [MALLORY])
    )
    assert result.error.code == ErrorCode.UNAUTHORIZED
    assert post is pre
    assert post.state == EscrowState.FUNDED


def test_cancel_guard_at_deadline(state_test_group) -> None:
    pre = _funded(deadline=DEADLINE)
    late = _spend(EscrowAction.CANCEL, [DEPOSITOR], ValidityInterval(DEADLINE - 1000, DEADLINE))
    _, result = state_test_group("lifecycle/deadline.json", "cancel_at_deadline", pre, late)
    assert result.error.code == ErrorCode.OUTSIDE_VALIDITY_WINDOW

    early = _spend(EscrowAction.CANCEL, [DEPOSITOR], ValidityInterval(DEADLINE - 1000, DEADLINE - 1))
    post, result = state_test_group("lifecycle/deadline.json", "cancel_before_deadline", pre, early)
    assert result.ok
    assert post.state == EscrowState.CANCELLED


def test_release_guard_before_deadline(state_test_group) -> None:
    pre = _funded(deadline=DEADLINE)
    early = _spend(EscrowAction.RELEASE, [BENEFICIARY], ValidityInterval(DEADLINE - 1, DEADLINE + 60_000))
    _, result = state_test_group("lifecycle/deadline.json", "release_before_deadline", pre, early)
    assert result.error.code == ErrorCode.OUTSIDE_VALIDITY_WINDOW


# ===================================================================
# Request / record helpers
# ===================================================================


def test_request_transition_carries_redeemer_and_target() -> None:
    request = request_transition(_funded(), EscrowAction.REFUND, [AUTHORIZED])
    assert request.redeemer_tag == RedeemerTag.REFUND
    assert request.target_state == EscrowState.REFUNDED
    assert request.signers == frozenset([AUTHORIZED])


def test_request_transition_rejects_deposit() -> None:
    assert _code(request_transition, new_instance(_terms()), EscrowAction.DEPOSIT, []) == ErrorCode.INVALID_TRANSITION


def test_record_spend_after_request() -> None:
    instance = _funded()
    request = request_transition(instance, EscrowAction.RELEASE, [BENEFICIARY])
    spent = record_spend(instance, request, SPEND_TX)
    assert spent.state == EscrowState.RELEASED
    assert instance.state == EscrowState.FUNDED


def test_conflicted_instance_rejects_everything(state_test_group) -> None:
    conflicted = record_conflict(_funded())
    assert conflicted.conflicted
    for action, signers in (
        (EscrowAction.RELEASE, [BENEFICIARY]),
        (EscrowAction.REFUND, [AUTHORIZED]),
        (EscrowAction.CANCEL, [DEPOSITOR]),
    ):
        _, result = state_test_group(
            "lifecycle/conflict.json", f"{action.value}_after_conflict", conflicted, _spend(action, signers)
        )
        assert result.error.code == ErrorCode.CONFLICTING_SPEND


def test_conflict_on_empty_rejected() -> None:
    assert _code(record_conflict, new_instance(_terms())) == ErrorCode.INVALID_TRANSITION


# ===================================================================
# EscrowBook
# ===================================================================


def test_book_register_and_spend() -> None:
    book = EscrowBook()
    book.register(_funded())
    assert FUNDING in book
    assert len(book) == 1

    request = book.request(FUNDING, EscrowAction.RELEASE, [BENEFICIARY])
    spent = book.record_spend(FUNDING, request, SPEND_TX)
    assert spent.state == EscrowState.RELEASED
    assert book.get(FUNDING) is spent

    # a second transition is refused before any signing round
    assert _code(book.request, FUNDING, EscrowAction.CANCEL, [DEPOSITOR]) == ErrorCode.INVALID_TRANSITION


def test_book_rejects_duplicate_and_unfunded() -> None:
    book = EscrowBook()
    book.register(_funded())
    assert _code(book.register, _funded()) == ErrorCode.INSTANCE_EXISTS
    assert _code(book.register, new_instance(_terms())) == ErrorCode.INVALID_TRANSITION


def test_book_unknown_reference() -> None:
    book = EscrowBook()
    missing = OutputReference(OTHER_TX, 1)
    assert _code(book.get, missing) == ErrorCode.INSTANCE_NOT_FOUND
    assert _code(book.request, missing, EscrowAction.RELEASE, [BENEFICIARY]) == ErrorCode.INSTANCE_NOT_FOUND


def test_book_conflict_is_sticky() -> None:
    book = EscrowBook()
    book.register(_funded())
    book.record_conflict(FUNDING)
    assert _code(book.request, FUNDING, EscrowAction.RELEASE, [BENEFICIARY]) == ErrorCode.CONFLICTING_SPEND


def test_book_instances_sorted_by_reference() -> None:
    book = EscrowBook()
    second = record_deposit(new_instance(_terms()), OutputReference(OTHER_TX, 0), FIVE_ADA)
    book.register(second)
    book.register(_funded())
    assert [i.funding_ref for i in book.instances()] == [FUNDING, OutputReference(OTHER_TX, 0)]
