"""Pytest hooks to generate fixtures (EEST-style)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from escrow_engine.assembler import TransactionAssembler
from escrow_engine.errors import EscrowError
from escrow_engine.instance_digest import compute_instance_digest
from escrow_engine.state_machine import TransitionRequest, TransitionResult, apply_transition
from escrow_engine.types import EscrowAction, EscrowInstance, TransactionPlan, ValidityInterval
from tools.fixtures_io import (
    instance_to_json,
    plan_to_json,
    request_to_json,
    validator_to_json,
    validity_to_json,
)

_STATE_CASES: dict[str, list[dict[str, Any]]] = {}
_PLAN_CASES: dict[str, list[dict[str, Any]]] = {}
_WIRE_VECTORS: list[dict[str, Any]] = []
_VECTOR_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


def _instance_snapshot(instance: EscrowInstance) -> dict[str, Any]:
    snapshot = instance_to_json(instance)
    snapshot["digest"] = compute_instance_digest(snapshot)
    return snapshot


@pytest.fixture
def state_test_group() -> Callable[
    [str, str, EscrowInstance, TransitionRequest], tuple[EscrowInstance, TransitionResult]
]:
    """Collect a state transition case under a specific fixture path."""

    def _state_test_group(
        rel_path: str, name: str, pre: EscrowInstance, request: TransitionRequest
    ) -> tuple[EscrowInstance, TransitionResult]:
        post, result = apply_transition(pre, request)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "pre_instance": _instance_snapshot(pre),
                "request": request_to_json(request),
                "expected": {
                    "ok": result.ok,
                    "error": result.error.code.name if result.error else None,
                    "post_instance": _instance_snapshot(post),
                },
            }
        )
        return post, result

    return _state_test_group


@pytest.fixture
def plan_test_group() -> Callable[..., tuple[Optional[TransactionPlan], Optional[EscrowError]]]:
    """Collect a transaction-plan case; returns (plan, error)."""

    def _plan_test_group(
        rel_path: str,
        name: str,
        assembler: TransactionAssembler,
        instance: EscrowInstance,
        action: EscrowAction,
        signers: list[bytes],
        now_ms: Optional[int] = None,
        validity: Optional[ValidityInterval] = None,
    ) -> tuple[Optional[TransactionPlan], Optional[EscrowError]]:
        plan: Optional[TransactionPlan] = None
        error: Optional[EscrowError] = None
        try:
            plan = assembler.plan(instance, action, signers, now_ms=now_ms, validity=validity)
        except EscrowError as exc:
            error = exc
        _PLAN_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "instance": _instance_snapshot(instance),
                "action": action.value,
                "signers": [s.hex() for s in signers],
                "now_ms": now_ms,
                "validity": validity_to_json(validity) if validity else None,
                "validator": validator_to_json(assembler.validator),
                "address_book": {k.hex(): v for k, v in sorted(assembler.address_book.items())},
                "expected": {
                    "ok": error is None,
                    "error": error.code.name if error else None,
                    "plan": plan_to_json(plan) if plan else None,
                },
            }
        )
        return plan, error

    return _plan_test_group


@pytest.fixture
def wire_vector() -> Callable[[str, dict[str, Any]], None]:
    """Collect a wire-format vector case."""

    def _wire_vector(name: str, vector: dict[str, Any]) -> None:
        payload = {"name": name}
        payload.update(vector)
        _WIRE_VECTORS.append(payload)

    return _wire_vector


@pytest.fixture
def vector_test_group() -> Callable[[str, dict[str, Any]], None]:
    """Collect pre-built test_vectors under a specific fixture path."""

    def _vector_test_group(rel_path: str, vector: dict[str, Any]) -> None:
        _VECTOR_CASES.setdefault(rel_path, []).append(vector)

    return _vector_test_group


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for cases_by_path in (_STATE_CASES, _PLAN_CASES):
        for rel_path, cases in cases_by_path.items():
            if not cases:
                continue
            target = out / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps({"cases": cases}, indent=2))

    if _WIRE_VECTORS:
        (out / "wire_format.json").write_text(
            json.dumps({"vectors": _WIRE_VECTORS}, indent=2)
        )

    for rel_path, vectors in _VECTOR_CASES.items():
        if not vectors:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"test_vectors": vectors}, indent=2))
