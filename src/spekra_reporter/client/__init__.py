"""HTTP delivery layer: retrying executor, report client, artifact uploads."""

from .api_client import ReportDeliveryClient, confirm_uploads_url
from .compression import (
    CompressionResult,
    CompressionService,
    compress_data,
    format_bytes,
)
from .executor import ClientSettings, RetryingRequestExecutor
from .upload_client import BatchUploadOrchestrator, FileSystem, LocalFileSystem

__all__ = [
    "BatchUploadOrchestrator",
    "ClientSettings",
    "CompressionResult",
    "CompressionService",
    "FileSystem",
    "LocalFileSystem",
    "ReportDeliveryClient",
    "RetryingRequestExecutor",
    "compress_data",
    "confirm_uploads_url",
    "format_bytes",
]
