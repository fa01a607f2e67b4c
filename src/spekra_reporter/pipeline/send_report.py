"""Report delivery stage: sends run metadata and results to the API."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from spekra_reporter.core.models import (
    ReportPayload,
    ReportResponse,
    RunMetadata,
    RunSummary,
    TestResult,
)
from spekra_reporter.core.types import (
    DeliveryMetrics,
    ErrorKind,
    Failure,
    Result,
    Success,
)
from spekra_reporter.exceptions import DeliveryError
from spekra_reporter.log import ReporterLogger, default_logger
from spekra_reporter.pipeline.base import BaseAsyncHandler

if TYPE_CHECKING:
    from spekra_reporter.client.api_client import ReportDeliveryClient

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class SendReportInput:
    metadata: RunMetadata
    results: tuple[TestResult, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class RequestMetrics:
    latency_ms: int = 0
    bytes_sent: int = 0
    bytes_uncompressed: int = 0
    retry_count: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class SendReportOutput:
    """Server response plus the presigned artifact URLs it handed out."""

    response: ReportResponse
    upload_urls: dict[str, str]
    metrics: RequestMetrics


class SendReportHandler(
    BaseAsyncHandler[SendReportInput, SendReportOutput, DeliveryError]
):
    """Sends one report and returns presigned URLs for its artifacts."""

    def __init__(
        self,
        client: ReportDeliveryClient,
        logger: ReporterLogger | None = None,
        metrics: DeliveryMetrics | None = None,
    ) -> None:
        self._client = client
        self._logger = logger or default_logger()
        self._metrics = metrics

    async def handle(
        self, command: SendReportInput
    ) -> Result[SendReportOutput, DeliveryError]:
        """Send ``command.results``; an empty result set sends nothing."""
        metadata = command.metadata

        if not command.results:
            self._logger.verbose("No results to send")
            return Success(
                SendReportOutput(
                    response=ReportResponse(
                        success=True,
                        message="No results to send",
                        summary=RunSummary(run_id=metadata.run_id),
                    ),
                    upload_urls={},
                    metrics=RequestMetrics(),
                )
            )

        payload = ReportPayload(
            **metadata.model_dump(exclude={"results"}), results=list(command.results)
        )
        self._logger.info(
            "Sending report",
            {
                "runId": metadata.run_id,
                "results": len(command.results),
                "framework": metadata.framework,
            },
        )

        outcome = await self._client.send_report(payload)

        if not outcome.success or outcome.data is None:
            message = (
                outcome.error.message if outcome.error else "Failed to send report"
            )
            self._logger.error("Failed to send report", message)
            if self._metrics is not None:
                self._metrics.record_failure()
            return Failure(
                DeliveryError(
                    message,
                    outcome.error.kind if outcome.error else ErrorKind.NETWORK,
                    status_code=outcome.error.status_code if outcome.error else None,
                    request_id=outcome.request_id,
                )
            )

        response = outcome.data
        self._logger.info(
            "Report sent",
            {
                "runId": metadata.run_id,
                "testsReceived": response.summary.tests_received,
                "latencyMs": outcome.latency_ms,
            },
        )
        if self._metrics is not None:
            self._metrics.record_success(
                results=len(command.results),
                latency_ms=outcome.latency_ms,
                bytes_sent=outcome.bytes_sent,
                bytes_uncompressed=outcome.bytes_uncompressed,
            )

        return Success(
            SendReportOutput(
                response=response,
                upload_urls=dict(response.upload_urls),
                metrics=RequestMetrics(
                    latency_ms=outcome.latency_ms,
                    bytes_sent=outcome.bytes_sent,
                    bytes_uncompressed=outcome.bytes_uncompressed,
                    retry_count=outcome.retry_count,
                ),
            )
        )
