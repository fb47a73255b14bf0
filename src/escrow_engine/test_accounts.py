"""Deterministic test parties for fixtures and scenarios.

Each party is a fixed 32-byte verification key; its payment key hash and
enterprise testnet address are derived the same way a wallet derives them.
"""

from __future__ import annotations

from .address import key_address
from .config import NETWORK_PREVIEW
from .crypto.hash_algorithms import key_hash_from_vkey

_SEEDS = {
    "depositor": 1,
    "beneficiary": 2,
    "authorized": 3,
    "carol": 4,
    "dave": 5,
    "mallory": 6,
}

VKEYS: dict[str, bytes] = {name: bytes([seed]) * 32 for name, seed in _SEEDS.items()}
KEY_HASHES: dict[str, bytes] = {name: key_hash_from_vkey(vk) for name, vk in VKEYS.items()}

DEPOSITOR = KEY_HASHES["depositor"]
BENEFICIARY = KEY_HASHES["beneficiary"]
AUTHORIZED = KEY_HASHES["authorized"]
CAROL = KEY_HASHES["carol"]
DAVE = KEY_HASHES["dave"]
MALLORY = KEY_HASHES["mallory"]

# key hash -> enterprise address on the preview testnet
ADDRESS_BOOK: dict[bytes, str] = {
    kh: key_address(kh, NETWORK_PREVIEW) for kh in KEY_HASHES.values()
}

NAMES: dict[bytes, str] = {kh: name for name, kh in KEY_HASHES.items()}


def name_of(key_hash: bytes) -> str:
    return NAMES.get(bytes(key_hash), bytes(key_hash).hex())
