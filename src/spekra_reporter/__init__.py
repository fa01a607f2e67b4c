"""Resilient delivery core for Spekra test reporters."""

import importlib.metadata
import logging

from spekra_reporter.client import (
    BatchUploadOrchestrator,
    ClientSettings,
    ReportDeliveryClient,
    RetryingRequestExecutor,
)
from spekra_reporter.config import (
    RedactionSettings,
    SpekraSettings,
    check_ready,
    resolve_config,
)
from spekra_reporter.core.models import (
    Artifact,
    ReportPayload,
    ReportResponse,
    RunMetadata,
    TestResult,
)
from spekra_reporter.core.types import (
    BatchOutcome,
    ClientError,
    ClientOutcome,
    DeliveryMetrics,
    ErrorKind,
    Failure,
    RequestSpec,
    Result,
    Success,
    UploadOutcome,
    UploadProgress,
    UploadTask,
)
from spekra_reporter.exceptions import (
    ConfigurationError,
    DeliveryError,
    SpekraError,
    ValidationError,
)
from spekra_reporter.log import ReporterLogger
from spekra_reporter.pipeline import SendReportHandler, UploadArtifactsHandler
from spekra_reporter.redaction import RedactionConfig, RedactionEngine
from spekra_reporter.telemetry import TelemetryContext, TelemetryReporter

# Version handling
try:
    __version__ = importlib.metadata.version("spekra-reporter")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
# This prevents 'No handler found' errors if the consuming app has no logging configured.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Delivery clients
    "RetryingRequestExecutor",
    "ClientSettings",
    "ReportDeliveryClient",
    "BatchUploadOrchestrator",
    # Redaction
    "RedactionEngine",
    "RedactionConfig",
    # Pipeline handlers
    "SendReportHandler",
    "UploadArtifactsHandler",
    # Configuration
    "SpekraSettings",
    "RedactionSettings",
    "resolve_config",
    "check_ready",
    # Logging and telemetry
    "ReporterLogger",
    "TelemetryContext",
    "TelemetryReporter",
    # Core types and wire models
    "RequestSpec",
    "ClientError",
    "ClientOutcome",
    "ErrorKind",
    "UploadTask",
    "UploadOutcome",
    "UploadProgress",
    "BatchOutcome",
    "DeliveryMetrics",
    "Result",
    "Success",
    "Failure",
    "Artifact",
    "TestResult",
    "RunMetadata",
    "ReportPayload",
    "ReportResponse",
    # Exceptions
    "SpekraError",
    "ConfigurationError",
    "ValidationError",
    "DeliveryError",
]
