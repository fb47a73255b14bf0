"""Plutus-data wire encoding (minimal subset).

Only the shapes the escrow validator reads are supported: constructor-tagged
alternatives, integers, byte strings and lists. Every value is checked before
serialization so nothing outside the subset reaches `cbor2`.

Constructor tags follow the Plutus convention:

- index 0..6    -> tag 121 + index
- index 7..127  -> tag 1280 + (index - 7)
- otherwise     -> tag 102 wrapping [index, fields]

Arrays are definite-length and integers minimally encoded, which is what
`cbor2` emits for lists and ints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from cbor2 import CBORTag, dumps

from .config import (
    CONSTR_TAG_BASE,
    CONSTR_TAG_EXTENDED_BASE,
    CONSTR_TAG_GENERAL,
    KEY_HASH_SIZES,
    MAX_BPS,
    MAX_BYTES_CHUNK,
    MAX_CONSTR_COMPACT,
    MAX_CONSTR_EXTENDED,
    MAX_OUTPUT_INDEX,
    MAX_UINT64,
    MIN_CBOR_NINT,
    OPTION_NONE,
    OPTION_SOME,
    TX_ID_SIZE,
)
from .errors import ErrorCode, EscrowError
from .types import EscrowTerms, FeePolicy, OutputReference, RedeemerTag


@dataclass(frozen=True)
class Constr:
    index: int
    fields: tuple = ()


PlutusData = Union[Constr, int, bytes, list, tuple]


def _expect_len(
    name: str, value: bytes, sizes: Sequence[int], code: ErrorCode = ErrorCode.ENCODING_ERROR
) -> None:
    if len(value) not in sizes:
        expected = " or ".join(str(s) for s in sizes)
        raise EscrowError(code, f"{name} must be {expected} bytes, got {len(value)}")


def _expect_key_hash(name: str, value: object) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise EscrowError(ErrorCode.INVALID_KEY_HASH, f"{name} must be bytes")
    if len(value) not in KEY_HASH_SIZES:
        raise EscrowError(ErrorCode.INVALID_KEY_HASH, f"{name} has invalid length {len(value)}")
    return bytes(value)


def _constr_to_cbor(c: Constr) -> CBORTag:
    if isinstance(c.index, bool) or not isinstance(c.index, int) or c.index < 0:
        raise EscrowError(ErrorCode.ENCODING_ERROR, f"invalid constructor index: {c.index!r}")
    fields = [_to_cbor(f) for f in c.fields]
    if c.index <= MAX_CONSTR_COMPACT:
        return CBORTag(CONSTR_TAG_BASE + c.index, fields)
    if c.index <= MAX_CONSTR_EXTENDED:
        return CBORTag(CONSTR_TAG_EXTENDED_BASE + (c.index - MAX_CONSTR_COMPACT - 1), fields)
    return CBORTag(CONSTR_TAG_GENERAL, [c.index, fields])


def _to_cbor(data: object) -> object:
    if isinstance(data, Constr):
        return _constr_to_cbor(data)
    if isinstance(data, bool):
        raise EscrowError(ErrorCode.ENCODING_ERROR, "booleans are not plutus data")
    if isinstance(data, int):
        if data < MIN_CBOR_NINT or data > MAX_UINT64:
            raise EscrowError(ErrorCode.ENCODING_ERROR, f"integer out of 64-bit range: {data}")
        return data
    if isinstance(data, (bytes, bytearray)):
        if len(data) > MAX_BYTES_CHUNK:
            raise EscrowError(
                ErrorCode.ENCODING_ERROR,
                f"byte string longer than {MAX_BYTES_CHUNK} bytes needs chunked encoding",
            )
        return bytes(data)
    if isinstance(data, (list, tuple)):
        return [_to_cbor(item) for item in data]
    raise EscrowError(ErrorCode.ENCODING_ERROR, f"unsupported plutus data: {type(data).__name__}")


def encode_data(data: PlutusData) -> bytes:
    return dumps(_to_cbor(data))


def optional_data(value: Optional[PlutusData]) -> Constr:
    """Aiken `Option`: Some(v) = Constr 0 [v], None = Constr 1 []."""
    if value is None:
        return Constr(OPTION_NONE)
    return Constr(OPTION_SOME, (value,))


def encode_optional(value: Optional[PlutusData]) -> bytes:
    return encode_data(optional_data(value))


# --- Terms ---


def validate_terms(terms: EscrowTerms) -> None:
    """Check the datum invariants the validator relies on."""
    _expect_key_hash("depositor", terms.depositor)
    _expect_key_hash("beneficiary", terms.beneficiary)

    if terms.deadline is not None:
        if isinstance(terms.deadline, bool) or not isinstance(terms.deadline, int):
            raise EscrowError(ErrorCode.INVALID_TERMS, "deadline must be an integer (POSIX ms)")
        if terms.deadline < 0 or terms.deadline > MAX_UINT64:
            raise EscrowError(ErrorCode.INVALID_TERMS, "deadline out of range")

    k = terms.required_signatures
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise EscrowError(ErrorCode.INVALID_TERMS, "required_signatures must be >= 1")

    keys = terms.authorized_keys
    if not isinstance(keys, (list, tuple)):
        raise EscrowError(ErrorCode.INVALID_TERMS, "authorized_keys must be a sequence")
    seen: set[bytes] = set()
    for pk in keys:
        pk_bytes = _expect_key_hash("authorized key", pk)
        if pk_bytes in seen:
            raise EscrowError(ErrorCode.INVALID_TERMS, "duplicate authorized key")
        seen.add(pk_bytes)

    if k > len(keys):
        raise EscrowError(ErrorCode.INVALID_TERMS, "required_signatures exceeds authorized key count")

    _validate_fee_policy(terms.fee_policy)


def _validate_fee_policy(fee: FeePolicy) -> None:
    pct = fee.fee_percentage
    if isinstance(pct, bool) or not isinstance(pct, int) or pct < 0 or pct > MAX_BPS:
        raise EscrowError(ErrorCode.INVALID_FEE, f"fee_percentage must be in [0, {MAX_BPS}]")
    if fee.fee_recipient is not None:
        _expect_key_hash("fee_recipient", fee.fee_recipient)


def terms_to_data(terms: EscrowTerms) -> Constr:
    validate_terms(terms)
    fee = terms.fee_policy
    return Constr(
        0,
        (
            bytes(terms.depositor),
            bytes(terms.beneficiary),
            optional_data(terms.deadline),
            terms.required_signatures,
            [bytes(k) for k in terms.authorized_keys],
            Constr(0, (fee.fee_percentage, optional_data(fee.fee_recipient))),
        ),
    )


def encode_terms(terms: EscrowTerms) -> bytes:
    try:
        return encode_data(terms_to_data(terms))
    except EscrowError as exc:
        if exc.code == ErrorCode.ENCODING_ERROR:
            raise
        raise EscrowError(ErrorCode.ENCODING_ERROR, f"malformed terms: {exc.message}") from exc


# --- Redeemer ---


def encode_redeemer(tag: RedeemerTag, extra: Optional[Sequence[PlutusData]] = None) -> bytes:
    if isinstance(tag, bool):
        raise EscrowError(ErrorCode.ENCODING_ERROR, f"unsupported redeemer tag: {tag!r}")
    try:
        index = RedeemerTag(tag)
    except ValueError:
        raise EscrowError(ErrorCode.ENCODING_ERROR, f"unsupported redeemer tag: {tag!r}") from None
    return encode_data(Constr(int(index), tuple(extra or ())))


# --- Output reference ---


def output_reference_to_data(ref: OutputReference) -> Constr:
    if not isinstance(ref.tx_id, (bytes, bytearray)):
        raise EscrowError(ErrorCode.INVALID_TX_ID, "transaction id must be bytes")
    _expect_len("transaction id", bytes(ref.tx_id), (TX_ID_SIZE,), ErrorCode.INVALID_TX_ID)

    index = ref.output_index
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise EscrowError(ErrorCode.ENCODING_ERROR, f"output index must be a non-negative integer: {index!r}")
    # The validator side is only defined for the 0..65535 encodings.
    if index > MAX_OUTPUT_INDEX:
        raise EscrowError(ErrorCode.ENCODING_ERROR, f"output index {index} exceeds {MAX_OUTPUT_INDEX}")
    return Constr(0, (bytes(ref.tx_id), index))


def encode_output_reference(ref: OutputReference) -> bytes:
    return encode_data(output_reference_to_data(ref))
