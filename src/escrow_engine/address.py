"""Script hashing and enterprise script addresses.

The deployed validator is identified by the BLAKE2b-224 hash of its language
prefix followed by the compiled script bytes; the escrow lives at the
enterprise (no stake part) address built from that hash.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import bech32

from .config import (
    ADDRESS_HRP_MAINNET,
    ADDRESS_HRP_TESTNET,
    KEY_ENTERPRISE_HEADER,
    KEY_HASH_SIZE,
    NETWORK_IDS,
    PLUTUS_SCRIPT_PREFIX,
    SCRIPT_ENTERPRISE_HEADER,
    SCRIPT_HASH_SIZE,
)
from .crypto.hash_algorithms import blake2b_224
from .errors import ErrorCode, EscrowError
from .types import Validator

_PLUTUS_VERSIONS = {"v1": 1, "v2": 2, "v3": 3}


def network_id(network: str) -> int:
    try:
        return NETWORK_IDS[network]
    except KeyError:
        raise EscrowError(ErrorCode.INVALID_ADDRESS, f"unknown network: {network}") from None


def script_hash(compiled_code_hex: str, plutus_version: int = 3) -> bytes:
    """Hash a compiled validator the way the ledger does."""
    prefix = PLUTUS_SCRIPT_PREFIX.get(plutus_version)
    if prefix is None:
        raise EscrowError(ErrorCode.INVALID_BLUEPRINT, f"unsupported plutus version: {plutus_version}")
    try:
        code = bytes.fromhex(compiled_code_hex)
    except (TypeError, ValueError) as exc:
        raise EscrowError(ErrorCode.INVALID_BLUEPRINT, f"compiledCode is not hex: {exc}") from None
    if not code:
        raise EscrowError(ErrorCode.INVALID_BLUEPRINT, "compiledCode is empty")
    return blake2b_224(bytes([prefix]) + code)


def _enterprise_address(header: int, credential: bytes, network: str) -> str:
    net = network_id(network)
    payload = bytes([header | net]) + bytes(credential)
    hrp = ADDRESS_HRP_MAINNET if net == 1 else ADDRESS_HRP_TESTNET
    return bech32.bech32_encode(hrp, bech32.convertbits(payload, 8, 5))


def script_address(hash_bytes: bytes, network: str) -> str:
    if len(hash_bytes) != SCRIPT_HASH_SIZE:
        raise EscrowError(
            ErrorCode.INVALID_ADDRESS, f"script hash must be {SCRIPT_HASH_SIZE} bytes, got {len(hash_bytes)}"
        )
    return _enterprise_address(SCRIPT_ENTERPRISE_HEADER, hash_bytes, network)


def key_address(key_hash: bytes, network: str) -> str:
    """Enterprise payment address for a key hash (no stake credential)."""
    if len(key_hash) != KEY_HASH_SIZE:
        raise EscrowError(ErrorCode.INVALID_KEY_HASH, f"key hash must be {KEY_HASH_SIZE} bytes, got {len(key_hash)}")
    return _enterprise_address(KEY_ENTERPRISE_HEADER, key_hash, network)


def _plutus_version(blueprint: Mapping[str, Any]) -> int:
    preamble = blueprint.get("preamble") or {}
    raw = str(preamble.get("plutusVersion", "v3")).lower()
    if raw not in _PLUTUS_VERSIONS:
        raise EscrowError(ErrorCode.INVALID_BLUEPRINT, f"unsupported plutusVersion: {raw}")
    return _PLUTUS_VERSIONS[raw]


def validator_from_blueprint(
    blueprint: Mapping[str, Any], network: str, title: Optional[str] = None
) -> Validator:
    """Load the spend validator from a compiled blueprint (plutus.json).

    The first validator is used unless `title` names another one. A `hash`
    recorded in the blueprint must agree with the recomputed script hash.
    """
    validators = blueprint.get("validators")
    if not validators:
        raise EscrowError(ErrorCode.INVALID_BLUEPRINT, "blueprint has no validators")

    if title is None:
        entry = validators[0]
    else:
        matches = [v for v in validators if v.get("title") == title]
        if not matches:
            raise EscrowError(ErrorCode.INVALID_BLUEPRINT, f"no validator titled {title!r}")
        entry = matches[0]

    code = entry.get("compiledCode")
    if not code:
        raise EscrowError(ErrorCode.INVALID_BLUEPRINT, "validator has no compiledCode")

    version = _plutus_version(blueprint)
    digest = script_hash(code, version)
    recorded = entry.get("hash")
    if recorded and recorded.lower() != digest.hex():
        raise EscrowError(
            ErrorCode.INVALID_BLUEPRINT, f"blueprint hash {recorded} does not match script hash {digest.hex()}"
        )
    return Validator(
        script=code,
        address=script_address(digest, network),
        script_hash=digest,
        plutus_version=version,
    )
