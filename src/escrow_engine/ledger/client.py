"""
Ledger collaborator: UTXO queries, submission and indexer polling.

The engine core never talks to the network. This module is the boundary that
looks up funding outputs once the indexer has caught up and hands already
signed transactions to a Blockfrost-compatible API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from ..config import CONSUMED_INPUT_MARKERS
from ..errors import ErrorCode, EscrowError
from ..state_machine import EscrowBook, TransitionRequest
from ..types import EscrowInstance, LookupStatus, OutputReference, Utxo, UtxoLookup
from .config import LedgerConfig

logger = logging.getLogger(__name__)


class LedgerClient(Protocol):
    async def utxos_at(self, address: str) -> List[Utxo]:
        ...

    async def submit(self, signed_tx: bytes) -> str:
        ...


def classify_submit_error(message: str) -> EscrowError:
    """Map a ledger rejection to an engine error.

    Rejections that say the funding input is gone mean another transaction won
    the race; they are reported as CONFLICTING_SPEND and must not be retried.
    """
    lowered = message.lower()
    for marker in CONSUMED_INPUT_MARKERS:
        if marker.lower() in lowered:
            return EscrowError(ErrorCode.CONFLICTING_SPEND, f"funding input already consumed: {message}")
    return EscrowError(ErrorCode.LEDGER_REJECTED, message)


def _parse_utxo(address: str, entry: Dict[str, Any]) -> Utxo:
    lovelace = 0
    for amount in entry.get("amount", []):
        if amount.get("unit") == "lovelace":
            lovelace = int(amount["quantity"])
    return Utxo(
        ref=OutputReference(
            tx_id=bytes.fromhex(entry["tx_hash"]),
            output_index=int(entry["output_index"]),
        ),
        address=entry.get("address", address),
        lovelace=lovelace,
        inline_datum=entry.get("inline_datum"),
    )


class BlockfrostClient:
    """HTTP client for a Blockfrost-compatible API."""

    def __init__(self, config: LedgerConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            headers={"project_id": self.config.project_id},
        )

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise EscrowError(ErrorCode.LEDGER_UNAVAILABLE, "client is not connected")
        return self.session

    async def utxos_at(self, address: str) -> List[Utxo]:
        url = f"{self.config.base_url}/addresses/{address}/utxos"
        try:
            async with self._session().get(url) as resp:
                if resp.status == 404:
                    # unknown address: nothing has been paid to it yet
                    return []
                if resp.status != 200:
                    text = await resp.text()
                    raise EscrowError(ErrorCode.LEDGER_UNAVAILABLE, f"utxo query failed ({resp.status}): {text}")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise EscrowError(ErrorCode.LEDGER_UNAVAILABLE, f"utxo query failed: {e}") from e
        return [_parse_utxo(address, entry) for entry in data]

    async def submit(self, signed_tx: bytes) -> str:
        """Submit signed transaction CBOR; returns the transaction id hex."""
        url = f"{self.config.base_url}/tx/submit"
        try:
            async with self._session().post(
                url,
                data=signed_tx,
                headers={"Content-Type": "application/cbor"},
            ) as resp:
                if resp.status != 200:
                    raise classify_submit_error(await resp.text())
                tx_hash = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise EscrowError(ErrorCode.LEDGER_UNAVAILABLE, f"submit failed: {e}") from e
        logger.info(f"Submitted transaction {tx_hash}")
        return tx_hash


async def probe_utxo(
    client: LedgerClient,
    address: str,
    tx_id: bytes,
    output_index: Optional[int] = None,
) -> UtxoLookup:
    """Single lookup; FOUND or NOT_YET_VISIBLE."""
    for utxo in await client.utxos_at(address):
        if utxo.ref.tx_id != bytes(tx_id):
            continue
        if output_index is None or utxo.ref.output_index == output_index:
            return UtxoLookup(LookupStatus.FOUND, attempts=1, utxo=utxo)
    return UtxoLookup(LookupStatus.NOT_YET_VISIBLE, attempts=1)


async def find_utxo(
    client: LedgerClient,
    address: str,
    tx_id: bytes,
    attempts: int,
    wait_seconds: float,
    output_index: Optional[int] = None,
) -> UtxoLookup:
    """Poll until an output of `tx_id` shows up at `address`.

    Waits `wait_seconds` before every retry and stops after `attempts`
    lookups with GAVE_UP. An unavailable indexer counts as a failed attempt.
    """
    if attempts < 1:
        raise EscrowError(ErrorCode.INTERNAL_ERROR, "attempts must be >= 1")
    for attempt in range(1, attempts + 1):
        try:
            lookup = await probe_utxo(client, address, tx_id, output_index)
        except EscrowError as e:
            if e.code != ErrorCode.LEDGER_UNAVAILABLE:
                raise
            logger.warning(f"Attempt {attempt}/{attempts}: indexer unavailable: {e.message}")
        else:
            if lookup.status == LookupStatus.FOUND:
                logger.info(f"Found {lookup.utxo.ref} at {address} after {attempt} attempt(s)")
                return UtxoLookup(LookupStatus.FOUND, attempts=attempt, utxo=lookup.utxo)
            logger.info(f"Attempt {attempt}/{attempts}: {bytes(tx_id).hex()} not yet visible at {address}")
        if attempt < attempts:
            await asyncio.sleep(wait_seconds)
    logger.error(f"Gave up waiting for {bytes(tx_id).hex()} at {address} after {attempts} attempts")
    return UtxoLookup(LookupStatus.GAVE_UP, attempts=attempts)


async def submit_spend(
    client: LedgerClient,
    book: EscrowBook,
    ref: OutputReference,
    request: TransitionRequest,
    signed_tx: bytes,
) -> EscrowInstance:
    """Submit a signed spend and record the outcome in `book`."""
    try:
        tx_hash = await client.submit(signed_tx)
    except EscrowError as e:
        if e.code == ErrorCode.CONFLICTING_SPEND:
            book.record_conflict(ref)
            logger.error(f"{request.action.value} of {ref} lost the race: {e.message}")
        else:
            logger.error(f"{request.action.value} of {ref} rejected: {e}")
        raise
    return book.record_spend(ref, request, bytes.fromhex(tx_hash))
