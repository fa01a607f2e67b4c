"""Artifact upload stage: presigned uploads followed by API confirmation."""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
import logging
from typing import TYPE_CHECKING

from spekra_reporter import constants
from spekra_reporter.client.compression import format_bytes
from spekra_reporter.core.models import Artifact
from spekra_reporter.core.types import Result, Success, UploadProgress, UploadTask
from spekra_reporter.exceptions import DeliveryError
from spekra_reporter.log import ReporterLogger, default_logger
from spekra_reporter.pipeline.base import BaseAsyncHandler

if TYPE_CHECKING:
    from spekra_reporter.client.api_client import ReportDeliveryClient
    from spekra_reporter.client.upload_client import (
        BatchUploadOrchestrator,
        ProgressCallback,
    )

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class UploadArtifactsInput:
    artifacts: tuple[Artifact, ...]
    upload_urls: Mapping[str, str]


@dataclasses.dataclass(frozen=True, slots=True)
class FailedUpload:
    id: str
    error: str


@dataclasses.dataclass(frozen=True, slots=True)
class UploadArtifactsOutput:
    succeeded: tuple[str, ...] = ()
    failed: tuple[FailedUpload, ...] = ()
    total_bytes_uploaded: int = 0
    total_artifact_size: int = 0


class UploadArtifactsHandler(
    BaseAsyncHandler[UploadArtifactsInput, UploadArtifactsOutput, DeliveryError]
):
    """Uploads artifacts that have presigned URLs and confirms them.

    Partial failures are reported in the output, not as a ``Failure``;
    a failed confirmation is logged and otherwise ignored since the files are
    already in storage.
    """

    def __init__(
        self,
        orchestrator: BatchUploadOrchestrator,
        client: ReportDeliveryClient,
        logger: ReporterLogger | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._client = client
        self._logger = logger or default_logger()

    async def handle(
        self, command: UploadArtifactsInput
    ) -> Result[UploadArtifactsOutput, DeliveryError]:
        tasks: list[UploadTask] = []
        skipped = 0
        for artifact in command.artifacts:
            url = command.upload_urls.get(artifact.id)
            if not url:
                skipped += 1
                continue
            tasks.append(
                UploadTask(
                    id=artifact.id,
                    source_path=artifact.path,
                    content_type=artifact.content_type,
                    destination=url,
                    compress_hint=not artifact.is_pre_compressed,
                )
            )

        if skipped:
            self._logger.verbose(
                "Skipped artifacts without upload URLs", {"count": skipped}
            )

        if not tasks:
            self._logger.verbose("No artifacts to upload")
            return Success(UploadArtifactsOutput())

        total_artifact_size = sum(a.size for a in command.artifacts)
        self._logger.info(
            "Uploading artifacts",
            {"count": len(tasks), "totalSize": format_bytes(total_artifact_size)},
        )

        result = await self._orchestrator.upload_batch(
            tasks, self._progress_logger()
        )

        succeeded = tuple(r.id for r in result.succeeded)
        failed = tuple(
            FailedUpload(id=r.id, error=r.error or "Unknown error")
            for r in result.failed
        )

        if failed:
            self._logger.warn(
                f"Upload incomplete: {len(succeeded)}/{len(tasks)} artifacts",
                {"failed": len(failed)},
            )
        else:
            self._logger.info(
                f"Uploaded {len(succeeded)} artifacts "
                f"({format_bytes(result.total_bytes_uploaded)})"
            )

        if succeeded:
            await self._confirm_uploads(succeeded)

        return Success(
            UploadArtifactsOutput(
                succeeded=succeeded,
                failed=failed,
                total_bytes_uploaded=result.total_bytes_uploaded,
                total_artifact_size=total_artifact_size,
            )
        )

    def _progress_logger(self) -> ProgressCallback:
        """Build a progress callback that logs every 10% and at completion."""
        last_logged = 0

        def on_progress(progress: UploadProgress) -> None:
            nonlocal last_logged
            if progress.total_bytes > 0:
                ratio = progress.bytes_uploaded / progress.total_bytes
            else:
                ratio = progress.completed_count / progress.total_count
            percentage = round(ratio * 100)
            if (
                percentage >= last_logged + constants.UPLOAD_PROGRESS_INTERVAL
                or percentage == 100
            ):
                self._logger.info(
                    f"Uploading artifacts: {percentage}% "
                    f"({format_bytes(progress.bytes_uploaded)}/"
                    f"{format_bytes(progress.total_bytes)})"
                )
                last_logged = percentage

        return on_progress

    async def _confirm_uploads(self, artifact_ids: tuple[str, ...]) -> None:
        outcome = await self._client.confirm_uploads(artifact_ids)
        if outcome.success and outcome.data is not None:
            self._logger.verbose(
                "Confirmed uploads", {"confirmed": outcome.data.confirmed}
            )
        else:
            self._logger.warn(
                "Failed to confirm uploads",
                {"error": outcome.error.message if outcome.error else "Unknown error"},
            )
