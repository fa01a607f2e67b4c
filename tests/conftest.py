"""
Global test configuration with support for different test types.
"""

from collections.abc import Callable
import logging
import os
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from spekra_reporter.client.executor import ClientSettings, RetryingRequestExecutor
from spekra_reporter.log import ReporterLogger

Handler = Callable[[httpx.Request], Any]


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_spekra_env(request, monkeypatch):
    """Ensure a clean SPEKRA_* environment for each test.

    - Removes all SPEKRA_* variables and debug toggles before each test
    - Leaves non-SPEKRA_* variables intact for stability

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("SPEKRA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DEBUG", raising=False)


# --- Logging Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Sets the log level for noisy external libraries to WARNING."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Test Environment Markers ---
def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "integration: Component integration tests with mocked transports",
        "allow_env_pollution: Keep SPEKRA_* environment variables for this test",
        "slow: Tests that take >1 second",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Core Fixtures ---


@pytest.fixture
def mock_api_key():
    """Provide a consistent, fake API key for tests."""
    return "spk_test_key_12345"


@pytest.fixture
def mock_logger():
    """A ReporterLogger double whose calls can be asserted on."""
    return MagicMock(spec=ReporterLogger)


class SleepRecorder:
    """Async stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def make_executor(sleep_recorder, mock_logger):
    """Build an executor over an ``httpx.MockTransport``.

    Jitter is neutral (``random`` returns 0.5) and sleeps are recorded, not
    awaited, unless overridden.
    """

    def _make(
        handler: Handler,
        *,
        random: Callable[[], float] = lambda: 0.5,
        **settings: Any,
    ) -> RetryingRequestExecutor:
        return RetryingRequestExecutor(
            ClientSettings(**settings),
            logger=mock_logger,
            transport=httpx.MockTransport(handler),
            random=random,
            sleep=sleep_recorder,
        )

    return _make
