"""Consume fixtures and validate them against the escrow engine."""

from __future__ import annotations

import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from escrow_engine.assembler import TransactionAssembler  # noqa: E402
from escrow_engine.encoding import Constr, encode_data, encode_redeemer, encode_terms  # noqa: E402
from escrow_engine.errors import EscrowError  # noqa: E402
from escrow_engine.instance_digest import compute_instance_digest  # noqa: E402
from escrow_engine.state_machine import apply_transition  # noqa: E402
from escrow_engine.tagging import compute_tag  # noqa: E402
from escrow_engine.types import EscrowAction  # noqa: E402
from fixtures_io import (  # noqa: E402
    instance_from_json,
    instance_to_json,
    plan_to_json,
    request_from_json,
    terms_from_json,
    validator_from_json,
    validity_from_json,
)


def _check_wire_vectors(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for vec in data.get("vectors", []):
        kind = vec.get("kind")
        if kind == "datum":
            encoded = encode_terms(terms_from_json(vec["terms"]))
        elif kind == "redeemer":
            encoded = encode_redeemer(vec["tag"])
        elif kind == "constr":
            encoded = encode_data(Constr(vec["index"]))
        else:
            failures.append(f"{vec['name']}: unknown_kind")
            continue
        if encoded.hex() != vec["expected_hex"]:
            failures.append(f"{vec['name']}: wire_mismatch")
    return failures


def _check_tag_vectors(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for vec in data.get("test_vectors", []):
        tag = compute_tag(bytes.fromhex(vec["tx_id"]), vec["output_index"])
        if tag.hex() != vec["expected_tag"]:
            failures.append(f"{vec['name']}: tag_mismatch")
    return failures


def _check_digest_vectors(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for vec in data.get("test_vectors", []):
        if compute_instance_digest(vec["instance"]) != vec["expected_digest"]:
            failures.append(f"{vec['name']}: digest_mismatch")
    return failures


def _check_state_cases(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())

    for case in data.get("cases", []):
        pre = instance_from_json(case["pre_instance"])
        request = request_from_json(case["request"])
        post, result = apply_transition(pre, request)

        expected = case["expected"]
        if result.ok != expected["ok"]:
            failures.append(f"{case['name']}: ok_mismatch")
            continue

        actual_err = result.error.code.name if result.error else None
        if actual_err != expected["error"]:
            failures.append(f"{case['name']}: error_mismatch")
            continue

        digest = compute_instance_digest(instance_to_json(post))
        if digest != expected["post_instance"]["digest"]:
            failures.append(f"{case['name']}: instance_mismatch")

    return failures


def _check_plan_cases(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())

    for case in data.get("cases", []):
        address_book = {bytes.fromhex(k): v for k, v in case["address_book"].items()}
        assembler = TransactionAssembler(validator_from_json(case["validator"]), address_book)
        instance = instance_from_json(case["instance"])
        validity = validity_from_json(case["validity"]) if case.get("validity") else None
        try:
            plan = assembler.plan(
                instance,
                EscrowAction(case["action"]),
                [bytes.fromhex(s) for s in case["signers"]],
                now_ms=case.get("now_ms"),
                validity=validity,
            )
        except EscrowError as exc:
            if exc.code.name != case["expected"]["error"]:
                failures.append(f"{case['name']}: error_mismatch")
            continue

        if not case["expected"]["ok"]:
            failures.append(f"{case['name']}: ok_mismatch")
        elif plan_to_json(plan) != case["expected"]["plan"]:
            failures.append(f"{case['name']}: plan_mismatch")

    return failures


def main() -> None:
    fixtures = ROOT / "fixtures"

    failures: list[str] = []

    wire = fixtures / "wire_format.json"
    if wire.exists():
        failures.extend(_check_wire_vectors(wire))

    for path in sorted((fixtures / "tagging").glob("*.json")):
        failures.extend(_check_tag_vectors(path))

    for path in sorted((fixtures / "instances").glob("*.json")):
        failures.extend(_check_digest_vectors(path))

    for path in sorted((fixtures / "lifecycle").glob("*.json")):
        failures.extend(_check_state_cases(path))

    for path in sorted((fixtures / "scenarios").glob("*.json")):
        failures.extend(_check_plan_cases(path))

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print("All fixtures passed")


if __name__ == "__main__":
    main()
