"""Core data types and wire models for the delivery core."""

from .models import (
    Artifact,
    ConfirmUploadsResponse,
    ReportPayload,
    ReportResponse,
    RunMetadata,
    RunSummary,
    TestResult,
    is_pre_compressed,
)
from .types import (
    AttemptResult,
    BatchOutcome,
    ClientError,
    ClientOutcome,
    ConfirmUploadsOutcome,
    DeliveryMetrics,
    ErrorKind,
    Failure,
    RequestSpec,
    Result,
    SendReportOutcome,
    Success,
    UploadOutcome,
    UploadProgress,
    UploadTask,
)

__all__ = [  # noqa: RUF022
    # Results and errors
    "Success",
    "Failure",
    "Result",
    "ErrorKind",
    "ClientError",
    # Client exchange
    "RequestSpec",
    "AttemptResult",
    "ClientOutcome",
    "SendReportOutcome",
    "ConfirmUploadsOutcome",
    # Uploads
    "UploadTask",
    "UploadOutcome",
    "BatchOutcome",
    "UploadProgress",
    "DeliveryMetrics",
    # Wire models
    "TestResult",
    "RunMetadata",
    "ReportPayload",
    "RunSummary",
    "ReportResponse",
    "ConfirmUploadsResponse",
    "Artifact",
    "is_pre_compressed",
]
