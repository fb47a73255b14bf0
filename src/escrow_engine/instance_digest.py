"""Canonical instance digest implementation (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

_STATE_CODES = {
    "empty": 0,
    "funded": 1,
    "released": 2,
    "refunded": 3,
    "cancelled": 4,
}


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _var_bytes(data: bytes) -> bytes:
    return _u64_be(len(data)) + data


def compute_instance_digest(instance: dict[str, Any]) -> str:
    """Compute instance digest v1 from a JSON instance snapshot.

    Fields are encoded in canonical order and hashed with BLAKE3-256. The
    datum is covered through its encoded bytes, so any drift in the term
    encoding changes the digest as well.
    """
    buf = bytearray()
    state = instance.get("state", "empty")
    if state not in _STATE_CODES:
        raise ValueError(f"unknown escrow state: {state}")
    buf += bytes([_STATE_CODES[state]])

    buf += _var_bytes(_hex_to_bytes(instance.get("datum")))

    ref = instance.get("funding_ref")
    if ref:
        tx_hex, _, index = ref.partition("#")
        tx_id = _hex_to_bytes(tx_hex)
        if len(tx_id) != 32:
            raise ValueError(f"tx id must be 32 bytes, got {len(tx_id)}")
        buf += b"\x01" + tx_id + _u64_be(int(index))
    else:
        buf += b"\x00"

    buf += _u64_be(int(instance.get("locked_value", 0)))
    buf += _var_bytes(_hex_to_bytes(instance.get("spent_by")))
    buf += b"\x01" if instance.get("conflicted") else b"\x00"

    return blake3(buf).hexdigest()
