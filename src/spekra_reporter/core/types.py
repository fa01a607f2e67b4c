"""Core data types that flow through the delivery core.

This module defines the immutable data structures exchanged between the
retrying executor, the upload orchestrator and the report client. Outcomes
are constructed once per call and never mutated after they are returned.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from pathlib import Path
from types import MappingProxyType
import typing

# --- Minimal guard helpers (clarity > boilerplate) ---

T = typing.TypeVar("T")


def _freeze_mapping(
    m: dict[str, str] | typing.Mapping[str, str] | None,
) -> typing.Mapping[str, str]:
    """Return an immutable mapping view (empty when ``m`` is None)."""
    if isinstance(m, MappingProxyType):
        return m
    return MappingProxyType(dict(m or {}))


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Result Monad for Robust Error Handling ---
# Pipeline handlers return Success | Failure instead of raising, so delivery
# failures stay a predictable part of the data flow.

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success(typing.Generic[TSuccess]):
    """A successful result in the pipeline."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure(typing.Generic[TFailure]):
    """A failure in the pipeline, containing the error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]

# --- Error taxonomy ---


class ErrorKind(str, Enum):
    """Machine-checkable classification of a failed exchange."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    API = "api"
    VALIDATION = "validation"


@dataclasses.dataclass(frozen=True, slots=True)
class ClientError:
    """Error details attached to a failed attempt or outcome."""

    kind: ErrorKind
    message: str
    status_code: int | None = None

    @property
    def is_retriable(self) -> bool:
        """Network and timeout errors, and 5xx API responses, are transient."""
        if self.kind in (ErrorKind.NETWORK, ErrorKind.TIMEOUT):
            return True
        return (
            self.kind is ErrorKind.API
            and self.status_code is not None
            and self.status_code >= 500
        )


# --- Request / attempt / outcome ---


@dataclasses.dataclass(frozen=True, slots=True)
class RequestSpec:
    """One fully materialised HTTP request (no streaming bodies)."""

    method: str
    headers: typing.Mapping[str, str] = dataclasses.field(default_factory=dict)
    body: bytes | str | None = None

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.method, str) and bool(self.method),
            message="must be a non-empty str",
            field_name="method",
            exc=TypeError,
        )
        object.__setattr__(self, "headers", _freeze_mapping(self.headers))


@dataclasses.dataclass(frozen=True, slots=True)
class AttemptResult(typing.Generic[T]):
    """Outcome of a single transport call."""

    success: bool
    payload: T | None = None
    error: ClientError | None = None

    def __post_init__(self) -> None:
        _require(
            condition=self.success == (self.error is None),
            message="error must be present exactly when success is False",
            field_name="error",
        )

    @classmethod
    def ok(cls, payload: T) -> AttemptResult[T]:
        return cls(success=True, payload=payload)

    @classmethod
    def failed(cls, error: ClientError) -> AttemptResult[T]:
        return cls(success=False, error=error)


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class ClientOutcome(typing.Generic[T]):
    """Aggregate result returned to the caller after all attempts."""

    success: bool
    data: T | None = None
    error: ClientError | None = None
    latency_ms: int = 0
    retry_count: int = 0


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class SendReportOutcome(ClientOutcome[T]):
    """Outcome of ``send_report`` with request correlation and size telemetry."""

    request_id: str
    bytes_sent: int
    bytes_uncompressed: int


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class ConfirmUploadsOutcome(ClientOutcome[T]):
    """Outcome of ``confirm_uploads``."""

    request_id: str


# --- Uploads ---


@dataclasses.dataclass(frozen=True, slots=True)
class UploadTask:
    """One artifact to move to a pre-authorized storage URL."""

    id: str
    source_path: Path
    content_type: str
    destination: str
    compress_hint: bool = False

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.id, str) and bool(self.id),
            message="must be a non-empty str",
            field_name="id",
            exc=TypeError,
        )
        if not isinstance(self.source_path, Path):
            object.__setattr__(self, "source_path", Path(self.source_path))


@dataclasses.dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Per-task upload result."""

    id: str
    success: bool
    error: str | None = None
    bytes_transferred: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Partition of a batch into succeeded and failed uploads."""

    succeeded: tuple[UploadOutcome, ...] = ()
    failed: tuple[UploadOutcome, ...] = ()
    total_bytes_uploaded: int = 0

    @property
    def total_count(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclasses.dataclass(frozen=True, slots=True)
class UploadProgress:
    """Snapshot passed to the progress callback after each task settles."""

    completed_count: int
    total_count: int
    bytes_uploaded: int
    total_bytes: int


# --- Reporter metrics ---


@dataclasses.dataclass(slots=True)
class DeliveryMetrics:
    """Running counters for report delivery, surfaced to ``on_metrics`` hooks.

    Mutable accumulator; callbacks receive ``snapshot()`` copies.
    """

    requests_sent: int = 0
    requests_failed: int = 0
    results_reported: int = 0
    results_dropped: int = 0
    total_latency_ms: int = 0
    last_request_latency_ms: int = 0
    bytes_sent: int = 0
    bytes_uncompressed: int = 0

    def record_success(
        self,
        *,
        results: int,
        latency_ms: int,
        bytes_sent: int,
        bytes_uncompressed: int,
    ) -> None:
        self.requests_sent += 1
        self.results_reported += results
        self.total_latency_ms += latency_ms
        self.last_request_latency_ms = latency_ms
        self.bytes_sent += bytes_sent
        self.bytes_uncompressed += bytes_uncompressed

    def record_failure(self) -> None:
        self.requests_failed += 1

    def snapshot(self) -> DeliveryMetrics:
        return dataclasses.replace(self)
