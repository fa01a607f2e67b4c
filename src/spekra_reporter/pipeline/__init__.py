"""Delivery pipeline handlers."""

from .base import BaseAsyncHandler
from .send_report import (
    RequestMetrics,
    SendReportHandler,
    SendReportInput,
    SendReportOutput,
)
from .upload_artifacts import (
    FailedUpload,
    UploadArtifactsHandler,
    UploadArtifactsInput,
    UploadArtifactsOutput,
)

__all__ = [
    "BaseAsyncHandler",
    "FailedUpload",
    "RequestMetrics",
    "SendReportHandler",
    "SendReportInput",
    "SendReportOutput",
    "UploadArtifactsHandler",
    "UploadArtifactsInput",
    "UploadArtifactsOutput",
]
