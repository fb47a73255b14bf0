"""Hash test vectors for the algorithms the escrow engine relies on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .hash_algorithms import ASSIGNMENTS, blake2b_224, blake2b_256, blake3_hash

HASHERS: Dict[str, Callable[[bytes], bytes]] = {
    "BLAKE2b-256": blake2b_256,
    "BLAKE2b-224": blake2b_224,
    "BLAKE3": blake3_hash,
}

BLOCK_SIZES = {
    "BLAKE2b-256": 128,
    "BLAKE2b-224": 128,
    "BLAKE3": 64,
}

ASCII_INPUTS = {"empty_string", "abc", "hello_world"}


@dataclass
class HashVector:
    name: str
    description: Optional[str]
    input_hex: str
    input_ascii: Optional[str]
    input_length: int
    expected_hex: str


def _inputs(block_size: int) -> List[tuple[str, Optional[str], bytes]]:
    return [
        ("empty_string", None, b""),
        ("abc", None, b"abc"),
        ("hello_world", None, b"Hello, world!"),
        (f"{block_size - 1}_bytes_a", "One byte less than block size", bytes([0x61] * (block_size - 1))),
        (f"{block_size}_bytes_a", "Exactly one block", bytes([0x61] * block_size)),
        (f"{block_size + 1}_bytes_a", "One byte over a block", bytes([0x61] * (block_size + 1))),
        ("1000_bytes_sequential", "Sequential byte pattern", bytes(i % 256 for i in range(1000))),
        # 32-byte ed25519 verification key shape
        ("32_bytes_vkey", "Verification key sized input", bytes([0x01] * 32)),
    ]


def hash_vectors(algorithm: str) -> Dict[str, Any]:
    if algorithm not in HASHERS:
        raise ValueError(f"unsupported hash algorithm: {algorithm}")
    hasher = HASHERS[algorithm]
    block_size = BLOCK_SIZES[algorithm]

    vectors = []
    for name, description, data in _inputs(block_size):
        ascii_text = data.decode("ascii") if name in ASCII_INPUTS else None
        vectors.append(
            HashVector(
                name=name,
                description=description,
                input_hex=data.hex(),
                input_ascii=ascii_text,
                input_length=len(data),
                expected_hex=hasher(data).hex(),
            )
        )

    return {
        "algorithm": algorithm,
        "output_size": len(hasher(b"")),
        "block_size": block_size,
        "purposes": [a.purpose for a in ASSIGNMENTS if a.algorithm == algorithm],
        "test_vectors": [v.__dict__ for v in vectors],
    }


def all_hash_vectors() -> Dict[str, Dict[str, Any]]:
    """One vector suite per distinct algorithm in ASSIGNMENTS."""
    suites: Dict[str, Dict[str, Any]] = {}
    for assignment in ASSIGNMENTS:
        if assignment.algorithm not in suites:
            suites[assignment.algorithm] = hash_vectors(assignment.algorithm)
    return suites
