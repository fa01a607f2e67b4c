"""Concurrency-bounded artifact uploads to presigned storage URLs.

Upload tasks are admitted through an ``asyncio.Semaphore`` so that at most
``concurrency`` uploads are in flight; a finished upload immediately frees a
slot for the next queued task. Each upload goes through the shared
``RetryingRequestExecutor``.

Uploads are never compressed at this layer, whatever a task's
``compress_hint`` says: presigned storage URLs are signed without a
``Content-Encoding`` header and reject requests that carry one. Most
artifacts (zip traces, webm videos, png screenshots) are already compressed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from spekra_reporter import constants
from spekra_reporter.core.types import (
    BatchOutcome,
    RequestSpec,
    UploadOutcome,
    UploadProgress,
    UploadTask,
)
from spekra_reporter.exceptions import ConfigurationError
from spekra_reporter.log import ReporterLogger, default_logger
from spekra_reporter.telemetry import TelemetryContext

if TYPE_CHECKING:
    import httpx

    from spekra_reporter.client.executor import RetryingRequestExecutor
    from spekra_reporter.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]

T_UPLOADS_BATCH = "uploads.batch"


class FileSystem(Protocol):
    """Filesystem operations consumed by the orchestrator."""

    def exists(self, path: Path) -> bool: ...  # noqa: D102
    async def read_bytes(self, path: Path) -> bytes: ...  # noqa: D102
    def size(self, path: Path) -> int: ...  # noqa: D102


class LocalFileSystem:
    """``FileSystem`` backed by the local disk; reads run in a worker thread."""

    def exists(self, path: Path) -> bool:
        return path.is_file()

    async def read_bytes(self, path: Path) -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    def size(self, path: Path) -> int:
        return path.stat().st_size


def _no_body(_response: httpx.Response) -> None:
    return None


class BatchUploadOrchestrator:
    """Uploads many artifacts with a bounded number in flight."""

    def __init__(
        self,
        executor: RetryingRequestExecutor,
        *,
        concurrency: int = constants.UPLOAD_CONCURRENCY,
        logger: ReporterLogger | None = None,
        filesystem: FileSystem | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")
        self._executor = executor
        self.concurrency = concurrency
        self._logger = logger or default_logger()
        self._fs: FileSystem = filesystem or LocalFileSystem()
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()

    async def upload_batch(
        self,
        tasks: Sequence[UploadTask],
        on_progress: ProgressCallback | None = None,
    ) -> BatchOutcome:
        """Upload every task and partition the results.

        ``on_progress`` is called exactly once per task, after it settles.
        Individual failures are recorded, never raised.
        """
        if not tasks:
            return BatchOutcome()

        total_count = len(tasks)
        total_bytes = self._total_bytes(tasks)
        gate = asyncio.Semaphore(self.concurrency)
        results: list[UploadOutcome] = []
        bytes_uploaded = 0

        async def _run(task: UploadTask) -> None:
            nonlocal bytes_uploaded
            async with gate:
                outcome = await self._upload_single(task)
            results.append(outcome)
            if outcome.success:
                bytes_uploaded += outcome.bytes_transferred
            if on_progress is not None:
                self._notify(
                    on_progress,
                    UploadProgress(
                        completed_count=len(results),
                        total_count=total_count,
                        bytes_uploaded=bytes_uploaded,
                        total_bytes=total_bytes,
                    ),
                )

        with self._telemetry(T_UPLOADS_BATCH, count=total_count):
            await asyncio.gather(*(_run(task) for task in tasks))

        return BatchOutcome(
            succeeded=tuple(r for r in results if r.success),
            failed=tuple(r for r in results if not r.success),
            total_bytes_uploaded=bytes_uploaded,
        )

    # --- Internal helpers ---

    def _total_bytes(self, tasks: Sequence[UploadTask]) -> int:
        total = 0
        for task in tasks:
            try:
                total += self._fs.size(task.source_path)
            except Exception:  # noqa: BLE001
                log.debug("Could not size %s", task.source_path, exc_info=True)
        return total

    def _notify(self, on_progress: ProgressCallback, progress: UploadProgress) -> None:
        try:
            on_progress(progress)
        except Exception as e:
            self._logger.warn("Upload progress callback threw", {"error": str(e)})

    async def _upload_single(self, task: UploadTask) -> UploadOutcome:
        """Upload one artifact, turning any failure into a failed outcome."""
        try:
            return await self._transfer(task)
        except Exception as e:
            error_message = str(e) or type(e).__name__
            self._logger.warn(
                "Failed to upload artifact",
                {"id": task.id, "file": task.source_path.name, "error": error_message},
            )
            return UploadOutcome(id=task.id, success=False, error=error_message)

    async def _transfer(self, task: UploadTask) -> UploadOutcome:
        """Upload one artifact to its presigned URL."""
        file_name = task.source_path.name

        if not self._fs.exists(task.source_path):
            self._logger.warn(
                "Artifact file not found", {"id": task.id, "file": file_name}
            )
            return UploadOutcome(
                id=task.id, success=False, error=f"File not found: {file_name}"
            )

        try:
            data = await self._fs.read_bytes(task.source_path)
        except OSError as e:
            self._logger.warn(
                "Failed to read artifact",
                {"id": task.id, "file": file_name, "error": str(e)},
            )
            return UploadOutcome(id=task.id, success=False, error=str(e))

        file_size = len(data)
        request = RequestSpec(
            method="PUT",
            headers={
                "Content-Type": task.content_type,
                "Content-Length": str(file_size),
            },
            body=data,
        )
        result = await self._executor.execute(task.destination, request, _no_body)

        if result.success:
            self._logger.verbose(
                "Uploaded artifact",
                {"id": task.id, "file": file_name, "bytes": file_size},
            )
            return UploadOutcome(
                id=task.id, success=True, bytes_transferred=file_size
            )

        error_message = result.error.message if result.error else "Upload failed"
        self._logger.warn(
            "Failed to upload artifact",
            {
                "id": task.id,
                "file": file_name,
                "error": error_message,
                "statusCode": result.error.status_code if result.error else None,
                "retries": result.retry_count,
            },
        )
        return UploadOutcome(id=task.id, success=False, error=error_message)
