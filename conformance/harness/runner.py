#!/usr/bin/env python3
"""
Escrow Conformance Test Runner

Sends codec vectors (datum, redeemer and output tag) to every configured
off-chain client and checks their bytes against the engine's expected output.
"""

import asyncio
import glob
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
import click
import yaml

from comparator import ResultComparator, REFERENCE_CLIENT
from config import HarnessConfig, ClientConfig, parse_clients
from reporter import ReportGenerator, SuiteResult, TestResult, ConformanceReport

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

ENDPOINTS = {
    "datum": "/encode/datum",
    "redeemer": "/encode/redeemer",
    "tag": "/tag",
}


class ConformanceClient:
    """HTTP client for a single implementation."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()

    async def encode(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Ask the client to encode one vector input.

        Returns the client's `{"hex", "error_code"}` response, or a dict with a
        `transport_error` key when the client could not be reached.
        """
        try:
            async with self.session.post(
                f"{self.config.endpoint}{ENDPOINTS[kind]}",
                json=payload,
            ) as resp:
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"[{self.config.name}] {kind} request failed: {e}")
            return {"transport_error": str(e)}


class ConformanceHarness:
    """Main test harness for conformance testing."""

    def __init__(self, config: HarnessConfig):
        self.config = config
        self.clients: Dict[str, ConformanceClient] = {}
        self.comparator = ResultComparator(reference_client=REFERENCE_CLIENT)
        self.reporter = ReportGenerator(config.result_dir)

    async def setup(self) -> None:
        """Initialize all clients."""
        for name, client_config in self.config.get_enabled_clients().items():
            client = ConformanceClient(client_config)
            await client.connect()
            self.clients[name] = client
            logger.info(f"Connected to {client_config.name} at {client_config.endpoint}")

    async def teardown(self) -> None:
        """Close all client connections."""
        for client in self.clients.values():
            await client.close()

    async def encode_all(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Send one vector to all clients concurrently."""
        names = list(self.clients.keys())
        responses = await asyncio.gather(*[
            self.clients[name].encode(kind, payload)
            for name in names
        ])
        return dict(zip(names, responses))

    async def run_vector(self, vector: Dict[str, Any]) -> TestResult:
        """Run a single test vector."""
        vector_name = vector.get("name", "unknown")
        kind = vector.get("kind", "")
        start_time = time.time()

        try:
            results = await self.encode_all(kind, vector.get("input", {}))
            comparison = self.comparator.compare_results(
                results, vector.get("expected", {}), vector_name
            )
            return TestResult(
                vector_name=vector_name,
                suite_name="",
                passed=not comparison.has_divergences,
                execution_time_ms=(time.time() - start_time) * 1000,
                comparison=comparison,
            )
        except KeyError as e:
            logger.error(f"Vector {vector_name} is malformed: missing {e}")
            return TestResult(
                vector_name=vector_name,
                suite_name="",
                passed=False,
                execution_time_ms=(time.time() - start_time) * 1000,
                error=f"malformed vector: missing {e}",
            )

    async def run_suite(self, suite_path: str) -> SuiteResult:
        """Run a test suite from a YAML file."""
        suite_name = Path(suite_path).stem
        logger.info(f"Running suite: {suite_name}")

        start_time = time.time()

        with open(suite_path) as f:
            suite = yaml.safe_load(f) or {}

        vectors = suite.get("test_vectors", [])
        runnable = [
            v for v in vectors
            if v.get("runnable", True) and v.get("kind") in ENDPOINTS
        ]
        if len(runnable) < len(vectors):
            logger.debug(f"  skipping {len(vectors) - len(runnable)} engine-only vectors")

        test_results = []
        for vector in runnable:
            result = await self.run_vector(vector)
            result.suite_name = suite_name
            test_results.append(result)

            status = "PASS" if result.passed else "FAIL"
            logger.info(f"  [{status}] {result.vector_name}")

            if not result.passed and self.config.stop_on_first_failure:
                break

        passed = sum(1 for r in test_results if r.passed)
        failed = sum(1 for r in test_results if not r.passed)

        return SuiteResult(
            suite_name=suite_name,
            total_tests=len(vectors),
            passed_tests=passed,
            failed_tests=failed,
            skipped_tests=len(vectors) - len(test_results),
            execution_time_ms=(time.time() - start_time) * 1000,
            test_results=test_results,
        )

    async def run_all(self, vector_paths: List[str]) -> ConformanceReport:
        """Run all test suites."""
        start_time = time.time()

        suite_results = []
        for path in vector_paths:
            result = await self.run_suite(path)
            suite_results.append(result)
            if result.failed_tests and self.config.stop_on_first_failure:
                break

        return self.reporter.generate_report(
            suite_results=suite_results,
            clients=list(self.clients.keys()),
            reference_client=self.comparator.reference_client,
            execution_time_ms=(time.time() - start_time) * 1000,
        )


def find_vector_files(vector_dir: str) -> List[str]:
    """Find all vector YAML files in directory."""
    patterns = [
        os.path.join(vector_dir, "**", "*.yaml"),
        os.path.join(vector_dir, "**", "*.yml"),
    ]

    files = []
    for pattern in patterns:
        files.extend(glob.glob(pattern, recursive=True))

    return sorted(files)


@click.command()
@click.option(
    "--vectors",
    default=None,
    help="Path to vectors directory or specific YAML file",
)
@click.option(
    "--client",
    "client_endpoints",
    multiple=True,
    help="Client endpoint as name=url (repeatable, replaces CLIENT_ENDPOINTS)",
)
@click.option(
    "--result-dir",
    default=None,
    help="Directory to write results",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop on first test failure",
)
def main(
    vectors: Optional[str],
    client_endpoints: tuple,
    result_dir: Optional[str],
    verbose: bool,
    stop_on_failure: bool,
) -> None:
    """Run escrow codec conformance tests."""

    # Load config from environment, then override with CLI args
    config = HarnessConfig.from_env()

    if client_endpoints:
        try:
            config.clients = parse_clients(",".join(client_endpoints), timeout=config.request_timeout)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--client")
    if result_dir:
        config.result_dir = result_dir
    if verbose or config.verbose:
        config.verbose = True
        logging.getLogger().setLevel(logging.DEBUG)
    if stop_on_failure:
        config.stop_on_first_failure = True

    if not config.get_enabled_clients():
        logger.error("No clients configured")
        sys.exit(1)

    # Find vector files
    vector_dir = vectors or config.vector_dir
    if os.path.isfile(vector_dir):
        vector_files = [vector_dir]
    else:
        vector_files = find_vector_files(vector_dir)

    if not vector_files:
        logger.error(f"No vector files found in {vector_dir}")
        sys.exit(1)

    logger.info(f"Found {len(vector_files)} vector files")

    # Run tests
    async def run() -> int:
        harness = ConformanceHarness(config)

        try:
            await harness.setup()
            report = await harness.run_all(vector_files)

            # Generate reports
            harness.reporter.write_json_report(report)
            harness.reporter.write_summary(report)
            harness.reporter.print_summary(report)

            return 0 if report.total_failed == 0 else 1

        finally:
            await harness.teardown()

    exit_code = asyncio.run(run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
