"""Output tags binding each spend output to the input it came from.

The validator recomputes `blake2b_256(serialise(own_ref))` and requires every
output of the spending transaction to carry that value as inline datum. One
validator run can therefore never be reused to satisfy a second escrow input
(double satisfaction).
"""

from __future__ import annotations

from .crypto.hash_algorithms import blake2b_256
from .encoding import encode_output_reference
from .types import OutputReference


def compute_tag(tx_id: bytes, output_index: int) -> bytes:
    """Return the 32-byte tag for the UTXO `tx_id#output_index`.

    Raises EscrowError(ENCODING_ERROR) for indices outside 0..65535 and
    INVALID_TX_ID for transaction ids that are not 32 bytes.
    """
    return tag_for(OutputReference(tx_id=tx_id, output_index=output_index))


def tag_for(ref: OutputReference) -> bytes:
    return blake2b_256(encode_output_reference(ref))


def tag_hex(ref: OutputReference) -> str:
    return tag_for(ref).hex()
