"""Retrying HTTP request executor shared by every Spekra client.

Performs one logical request as a sequence of strictly ordered attempts:

- each attempt runs under its own timeout guard (``asyncio.timeout``)
- failures are classified as network, timeout or api (with status code)
- network, timeout and 5xx api failures are retried with exponential backoff
  and ±25% jitter; every other failure is terminal
- ordinary transport failures never raise; they come back as a
  ``ClientOutcome`` with ``success=False``

Clock, random source and sleep are injectable so retry timing can be tested
deterministically.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import dataclasses
import logging
import random as _random
import time
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from spekra_reporter import constants
from spekra_reporter.core.types import (
    AttemptResult,
    ClientError,
    ClientOutcome,
    ErrorKind,
    RequestSpec,
)
from spekra_reporter.exceptions import ConfigurationError
from spekra_reporter.log import ReporterLogger, default_logger
from spekra_reporter.telemetry import TelemetryContext

if TYPE_CHECKING:
    from spekra_reporter.config import SpekraSettings
    from spekra_reporter.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)

T = TypeVar("T")

ResponseParser = Callable[[httpx.Response], T]

# --- Telemetry scopes/keys ---
T_CLIENT_EXECUTE = "client.execute"
T_CLIENT_RETRY = "client.retry"


@dataclasses.dataclass(frozen=True, slots=True)
class ClientSettings:
    """Executor configuration, fixed at construction."""

    timeout_ms: int = constants.TIMEOUT_MS
    max_retries: int = constants.MAX_RETRIES
    retry_base_delay_ms: int = constants.RETRY_BASE_DELAY_MS
    retry_max_delay_ms: int = constants.RETRY_MAX_DELAY_MS

    def __post_init__(self) -> None:
        """Malformed settings are programmer errors and fail fast."""
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must be >= 0, got {self.max_retries}"
            )
        if self.retry_base_delay_ms < 0 or self.retry_max_delay_ms < 0:
            raise ConfigurationError("retry delays must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, settings: SpekraSettings) -> ClientSettings:
        return cls(
            timeout_ms=settings.timeout_ms,
            max_retries=settings.max_retries,
            retry_base_delay_ms=settings.retry_base_delay_ms,
            retry_max_delay_ms=settings.retry_max_delay_ms,
        )


class RetryingRequestExecutor:
    """Executes single logical requests with timeout, retry and backoff.

    Instances hold configuration and collaborators only, so one executor can
    serve many concurrent callers.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        logger: ReporterLogger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        random: Callable[[], float] = _random.random,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            settings: Timeout and retry configuration.
            logger: Logger collaborator for retry diagnostics.
            transport: httpx transport; ``None`` uses httpx's network transport.
            clock: Monotonic clock in seconds, used for ``latency_ms``.
            random: Uniform random source in ``[0, 1)`` for jitter.
            sleep: Awaitable sleep taking seconds, used between attempts.
            telemetry: Optional telemetry context.
        """
        self.settings = settings or ClientSettings()
        self._logger = logger or default_logger()
        self._transport = transport
        self._clock = clock
        self._random = random
        self._sleep = sleep
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()

    async def execute(
        self,
        url: str,
        request: RequestSpec,
        parse_response: ResponseParser[T],
    ) -> ClientOutcome[T]:
        """Execute ``request`` against ``url``, retrying transient failures.

        Args:
            url: Destination URL.
            request: Method, headers and fully materialised body.
            parse_response: Maps a successful response to the outcome data.
                Exceptions raised here count as network failures of the attempt.

        Returns:
            A ``ClientOutcome`` describing the final attempt, with the number
            of retries performed and the elapsed wall-clock time.
        """
        max_attempts = self.settings.max_attempts
        start = self._clock()
        retry_count = 0
        last_error: ClientError | None = None

        with self._telemetry(T_CLIENT_EXECUTE, method=request.method):
            for attempt in range(1, max_attempts + 1):
                result = await self._attempt(url, request, parse_response)

                if result.success:
                    return ClientOutcome(
                        success=True,
                        data=result.payload,
                        latency_ms=self._elapsed_ms(start),
                        retry_count=retry_count,
                    )

                last_error = result.error
                if last_error is None or not last_error.is_retriable:
                    break

                if attempt < max_attempts:
                    retry_count += 1
                    delay = self.calculate_backoff_delay(attempt)
                    self._logger.verbose(
                        f"Request failed, retrying in {delay}ms",
                        {
                            "attempt": attempt,
                            "maxAttempts": max_attempts,
                            "error": last_error.message,
                        },
                    )
                    self._telemetry.count(T_CLIENT_RETRY, attempt=attempt)
                    await self._sleep(delay / 1000)

        return ClientOutcome(
            success=False,
            error=last_error
            or ClientError(ErrorKind.NETWORK, "All retry attempts failed"),
            latency_ms=self._elapsed_ms(start),
            retry_count=retry_count,
        )

    def calculate_backoff_delay(self, attempt: int) -> int:
        """Delay in ms before the retry that follows ``attempt`` (1-based)."""
        exponential = self.settings.retry_base_delay_ms * (2 ** (attempt - 1))
        capped = min(exponential, self.settings.retry_max_delay_ms)
        jitter = capped * constants.RETRY_JITTER_RATIO * (self._random() * 2 - 1)
        return max(0, round(capped + jitter))

    # --- Internal helpers ---

    def _create_http_client(self) -> httpx.AsyncClient:
        """Create a configured HTTP client - centralized configuration"""  # noqa: D415
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.timeout_ms / 1000,
        )

    async def _attempt(
        self,
        url: str,
        request: RequestSpec,
        parse_response: ResponseParser[T],
    ) -> AttemptResult[T]:
        """Run one attempt under the timeout guard and classify the result."""
        try:
            async with asyncio.timeout(self.settings.timeout_ms / 1000):
                async with self._create_http_client() as client:
                    response = await client.request(
                        request.method,
                        url,
                        headers=dict(request.headers),
                        content=request.body,
                    )
                    if not response.is_success:
                        return AttemptResult.failed(
                            ClientError(
                                ErrorKind.API,
                                _error_text(response),
                                status_code=response.status_code,
                            )
                        )
                    return AttemptResult.ok(parse_response(response))
        except (TimeoutError, httpx.TimeoutException):
            return AttemptResult.failed(
                ClientError(
                    ErrorKind.TIMEOUT,
                    f"Request timed out after {self.settings.timeout_ms}ms",
                )
            )
        except Exception as e:
            log.debug("Attempt against %s failed", url, exc_info=True)
            return AttemptResult.failed(
                ClientError(ErrorKind.NETWORK, str(e) or type(e).__name__)
            )

    def _elapsed_ms(self, start: float) -> int:
        return round((self._clock() - start) * 1000)


def _error_text(response: httpx.Response) -> str:
    try:
        return response.text
    except Exception:  # noqa: BLE001
        return "Unknown error"
