"""Hash algorithm assignments for the escrow engine."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from blake3 import blake3

from ..config import KEY_HASH_SIZE, SCRIPT_HASH_SIZE, TAG_SIZE


@dataclass(frozen=True)
class HashAssignment:
    purpose: str
    algorithm: str
    output_size: int
    hashed_input: str


ASSIGNMENTS = [
    HashAssignment("output_tag", "BLAKE2b-256", TAG_SIZE, "cbor(Constr 0 [tx_id, output_index])"),
    HashAssignment("key_hash", "BLAKE2b-224", KEY_HASH_SIZE, "ed25519 verification key bytes"),
    HashAssignment("script_hash", "BLAKE2b-224", SCRIPT_HASH_SIZE, "language_prefix || script bytes"),
    HashAssignment("instance_digest", "BLAKE3", 32, "canonical instance snapshot bytes"),
]


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def blake2b_224(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=28).digest()


def blake3_hash(data: bytes) -> bytes:
    return blake3(data).digest()


def key_hash_from_vkey(vkey: bytes) -> bytes:
    if len(vkey) != 32:
        raise ValueError("ed25519 verification key must be 32 bytes")
    return blake2b_224(vkey)
