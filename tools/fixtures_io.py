"""Helpers to serialize/deserialize escrow fixtures."""

from __future__ import annotations

from typing import Any, Optional

from escrow_engine.encoding import encode_terms
from escrow_engine.state_machine import TransitionRequest
from escrow_engine.types import (
    DepositPlan,
    EscrowAction,
    EscrowInstance,
    EscrowState,
    EscrowTerms,
    FeePolicy,
    NoValidator,
    OutputReference,
    TransactionPlan,
    Validator,
    ValidatorRef,
    ValidityInterval,
)


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def _opt_hex(v: Optional[bytes]) -> Optional[str]:
    return None if v is None else _bytes_to_hex(v)


def _opt_bytes(v: Optional[str]) -> Optional[bytes]:
    return None if v is None else _hex_to_bytes(v)


def terms_to_json(terms: EscrowTerms) -> dict[str, Any]:
    return {
        "depositor": _bytes_to_hex(terms.depositor),
        "beneficiary": _bytes_to_hex(terms.beneficiary),
        "deadline": terms.deadline,
        "required_signatures": terms.required_signatures,
        "authorized_keys": [_bytes_to_hex(k) for k in terms.authorized_keys],
        "fee_policy": {
            "fee_percentage": terms.fee_policy.fee_percentage,
            "fee_recipient": _opt_hex(terms.fee_policy.fee_recipient),
        },
    }


def terms_from_json(data: dict[str, Any]) -> EscrowTerms:
    fee = data.get("fee_policy", {})
    return EscrowTerms(
        depositor=_hex_to_bytes(data["depositor"]),
        beneficiary=_hex_to_bytes(data["beneficiary"]),
        deadline=data.get("deadline"),
        required_signatures=data["required_signatures"],
        authorized_keys=tuple(_hex_to_bytes(k) for k in data.get("authorized_keys", [])),
        fee_policy=FeePolicy(
            fee_percentage=fee.get("fee_percentage", 0),
            fee_recipient=_opt_bytes(fee.get("fee_recipient")),
        ),
    )


def ref_to_json(ref: Optional[OutputReference]) -> Optional[str]:
    return None if ref is None else str(ref)


def ref_from_json(text: Optional[str]) -> Optional[OutputReference]:
    return None if text is None else OutputReference.parse(text)


def validity_to_json(validity: ValidityInterval) -> dict[str, Any]:
    return {"valid_from": validity.valid_from, "valid_to": validity.valid_to}


def validity_from_json(data: Optional[dict[str, Any]]) -> ValidityInterval:
    if not data:
        return ValidityInterval()
    return ValidityInterval(valid_from=data.get("valid_from"), valid_to=data.get("valid_to"))


def instance_to_json(instance: EscrowInstance) -> dict[str, Any]:
    # `datum` is what the instance digest covers; terms are kept for readability.
    return {
        "state": instance.state.value,
        "terms": terms_to_json(instance.terms),
        "datum": _bytes_to_hex(encode_terms(instance.terms)),
        "funding_ref": ref_to_json(instance.funding_ref),
        "locked_value": instance.locked_value,
        "spent_by": _opt_hex(instance.spent_by),
        "conflicted": instance.conflicted,
    }


def instance_from_json(data: dict[str, Any]) -> EscrowInstance:
    return EscrowInstance(
        terms=terms_from_json(data["terms"]),
        state=EscrowState(data.get("state", "empty")),
        funding_ref=ref_from_json(data.get("funding_ref")),
        locked_value=data.get("locked_value", 0),
        spent_by=_opt_bytes(data.get("spent_by")),
        conflicted=data.get("conflicted", False),
    )


def validator_to_json(validator: ValidatorRef) -> Optional[dict[str, Any]]:
    if isinstance(validator, NoValidator):
        return None
    return {
        "address": validator.address,
        "script_hash": _bytes_to_hex(validator.script_hash),
        "plutus_version": validator.plutus_version,
    }


def plan_to_json(plan: TransactionPlan) -> dict[str, Any]:
    return {
        "action": plan.action.value,
        "redeemer_tag": int(plan.redeemer_tag),
        "inputs": [
            {
                "ref": str(i.ref),
                "lovelace": i.lovelace,
                "redeemer": _bytes_to_hex(i.redeemer),
            }
            for i in plan.inputs
        ],
        "outputs": [
            {
                "address": o.address,
                "key_hash": _bytes_to_hex(o.key_hash),
                "lovelace": o.lovelace,
                "inline_datum": _opt_hex(o.inline_datum),
            }
            for o in plan.outputs
        ],
        "required_signers": [_bytes_to_hex(s) for s in plan.required_signers],
        "validity": validity_to_json(plan.validity),
        "validator": validator_to_json(plan.validator),
        "output_tag": _bytes_to_hex(plan.output_tag),
    }


def deposit_plan_to_json(plan: DepositPlan) -> dict[str, Any]:
    return {
        "script_address": plan.script_address,
        "lovelace": plan.lovelace,
        "datum": _bytes_to_hex(plan.datum),
        "validator": validator_to_json(plan.validator),
    }


def validator_from_json(data: Optional[dict[str, Any]], script: str = "") -> ValidatorRef:
    if data is None:
        return NoValidator()
    return Validator(
        script=script,
        address=data["address"],
        script_hash=_hex_to_bytes(data.get("script_hash", "")),
        plutus_version=data.get("plutus_version", 3),
    )


def request_to_json(request: TransitionRequest) -> dict[str, Any]:
    return {
        "action": request.action.value,
        "signers": sorted(_bytes_to_hex(s) for s in request.signers),
        "validity": validity_to_json(request.validity),
        "funding_ref": ref_to_json(request.funding_ref),
        "locked_value": request.locked_value,
        "spend_tx_id": _opt_hex(request.spend_tx_id),
    }


def request_from_json(data: dict[str, Any]) -> TransitionRequest:
    return TransitionRequest(
        action=EscrowAction(data["action"]),
        signers=frozenset(_hex_to_bytes(s) for s in data.get("signers", [])),
        validity=validity_from_json(data.get("validity")),
        funding_ref=ref_from_json(data.get("funding_ref")),
        locked_value=data.get("locked_value", 0),
        spend_tx_id=_opt_bytes(data.get("spend_tx_id")),
    )
