"""
Configuration management for the escrow conformance harness.
"""

import os
from dataclasses import dataclass, field
from typing import Dict

DEFAULT_CLIENTS = "offchain-ts=http://localhost:8081"


@dataclass
class ClientConfig:
    """Configuration for a single client endpoint."""
    name: str
    endpoint: str
    enabled: bool = True
    timeout: float = 30.0


@dataclass
class HarnessConfig:
    """Main configuration for the test harness."""
    # Client endpoints
    clients: Dict[str, ClientConfig] = field(default_factory=dict)

    # Paths
    vector_dir: str = "vectors"
    result_dir: str = "conformance/results"

    # Execution settings
    stop_on_first_failure: bool = False
    verbose: bool = False

    # Timeouts
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load configuration from environment variables.

        CLIENT_ENDPOINTS is a comma separated list of `name=url` pairs.
        """
        config = cls()

        config.request_timeout = float(os.environ.get("REQUEST_TIMEOUT", config.request_timeout))
        config.clients = parse_clients(
            os.environ.get("CLIENT_ENDPOINTS", DEFAULT_CLIENTS),
            timeout=config.request_timeout,
        )

        # Load paths
        config.vector_dir = os.environ.get("VECTOR_DIR", config.vector_dir)
        config.result_dir = os.environ.get("RESULT_DIR", config.result_dir)

        # Load settings
        config.verbose = os.environ.get("VERBOSE", "").lower() in ("true", "1", "yes")
        config.stop_on_first_failure = os.environ.get(
            "STOP_ON_FIRST_FAILURE", ""
        ).lower() in ("true", "1", "yes")

        return config

    def get_enabled_clients(self) -> Dict[str, ClientConfig]:
        """Get only enabled client configurations."""
        return {
            name: client
            for name, client in self.clients.items()
            if client.enabled
        }


def parse_clients(endpoints: str, timeout: float = 30.0) -> Dict[str, ClientConfig]:
    clients: Dict[str, ClientConfig] = {}
    for item in endpoints.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, endpoint = item.partition("=")
        if not sep or not endpoint:
            raise ValueError(f"client endpoint must be 'name=url': {item!r}")
        clients[name.strip()] = ClientConfig(
            name=name.strip(),
            endpoint=endpoint.strip().rstrip("/"),
            timeout=timeout,
        )
    return clients
