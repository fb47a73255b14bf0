"""
Runtime configuration for the ledger collaborator.
"""

import os
from dataclasses import dataclass

from ..config import (
    DEFAULT_BLOCKFROST_URL,
    INDEXER_MAX_ATTEMPTS,
    INDEXER_WAIT_SECONDS,
    NETWORK_IDS,
    NETWORK_PREVIEW,
    REQUEST_TIMEOUT_SECONDS,
)
from ..errors import ErrorCode, EscrowError


@dataclass
class LedgerConfig:
    """Connection and polling settings for a Blockfrost-compatible API."""
    base_url: str = DEFAULT_BLOCKFROST_URL
    project_id: str = ""
    network: str = NETWORK_PREVIEW

    # Indexer polling
    indexer_wait_seconds: float = INDEXER_WAIT_SECONDS
    indexer_max_attempts: int = INDEXER_MAX_ATTEMPTS

    # Timeouts
    request_timeout: float = REQUEST_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.base_url = os.environ.get("BLOCKFROST_URL", DEFAULT_BLOCKFROST_URL).rstrip("/")
        config.project_id = os.environ.get("BLOCKFROST_KEY", "")
        config.network = os.environ.get("CARDANO_NETWORK", NETWORK_PREVIEW)
        if config.network not in NETWORK_IDS:
            raise EscrowError(ErrorCode.INVALID_ADDRESS, f"unknown CARDANO_NETWORK: {config.network}")

        # Load polling settings
        config.indexer_wait_seconds = float(
            os.environ.get("INDEXER_WAIT_SECONDS", INDEXER_WAIT_SECONDS)
        )
        config.indexer_max_attempts = int(
            os.environ.get("INDEXER_MAX_ATTEMPTS", INDEXER_MAX_ATTEMPTS)
        )
        if config.indexer_max_attempts < 1:
            raise EscrowError(ErrorCode.INTERNAL_ERROR, "INDEXER_MAX_ATTEMPTS must be >= 1")

        return config

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id)
