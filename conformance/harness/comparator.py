"""
Result comparison logic for escrow codec conformance.

The reference is the expected output recorded in the vector itself (produced
by the Python engine when fixtures were filled); every client is checked
against it field by field.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

REFERENCE_CLIENT = "escrow-engine"


@dataclass
class Divergence:
    """A client output that differs from the reference."""
    field: str
    expected: Any
    actual: Any
    client: str
    reference_client: str
    vector_name: str
    details: Optional[str] = None


@dataclass
class ComparisonResult:
    """Result of comparing client outputs against the reference."""
    success: bool
    divergences: List[Divergence]
    clients_compared: List[str]

    @property
    def has_divergences(self) -> bool:
        return len(self.divergences) > 0


def _normalize_hex(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value[2:] if value.startswith(("0x", "0X")) else value
    return v.lower()


class ResultComparator:
    """Compares client responses with the expected vector output."""

    def __init__(self, reference_client: str = REFERENCE_CLIENT):
        self.reference_client = reference_client

    def compare_results(
        self,
        results: Dict[str, Dict[str, Any]],
        expected: Dict[str, Any],
        vector_name: str,
    ) -> ComparisonResult:
        """
        Compare every client's response with the expected output.

        Args:
            results: Dict mapping client name to its response dict
            expected: The vector's `expected` block
            vector_name: Name of the test vector
        """
        divergences: List[Divergence] = []
        for client, result in results.items():
            divergences.extend(self._compare_single(expected, result, client, vector_name))

        return ComparisonResult(
            success=len(divergences) == 0,
            divergences=divergences,
            clients_compared=list(results.keys()),
        )

    def _divergence(self, field: str, expected: Any, actual: Any, client: str,
                    vector_name: str, details: Optional[str] = None) -> Divergence:
        return Divergence(
            field=field,
            expected=expected,
            actual=actual,
            client=client,
            reference_client=self.reference_client,
            vector_name=vector_name,
            details=details,
        )

    def _compare_single(
        self,
        expected: Dict[str, Any],
        actual: Dict[str, Any],
        client: str,
        vector_name: str,
    ) -> List[Divergence]:
        """Compare a single client response against the reference."""
        divergences = []

        if "transport_error" in actual:
            divergences.append(self._divergence(
                "transport", None, actual["transport_error"], client, vector_name,
                details="Client did not answer",
            ))
            return divergences

        ref_error = expected.get("error_code", 0)
        act_error = actual.get("error_code", 0)
        if ref_error != act_error:
            divergences.append(self._divergence(
                "error_code", ref_error, act_error, client, vector_name,
                details=f"Error code mismatch: expected 0x{ref_error:04x}, got 0x{act_error:04x}",
            ))

        ref_hex = _normalize_hex(expected.get("hex"))
        act_hex = _normalize_hex(actual.get("hex"))
        if ref_hex is not None and ref_hex != act_hex:
            divergences.append(self._divergence(
                "hex", ref_hex, act_hex, client, vector_name,
                details=_first_difference(ref_hex, act_hex),
            ))

        return divergences


def _first_difference(expected: str, actual: Optional[str]) -> str:
    if actual is None:
        return "No bytes returned"
    for i, (a, b) in enumerate(zip(expected, actual)):
        if a != b:
            return f"First differing byte at offset {i // 2}"
    return f"Length mismatch: expected {len(expected) // 2} bytes, got {len(actual) // 2}"
