"""HTTP client for the Spekra reports API.

Handles ``POST /reports`` (report metadata, results and artifact manifest)
and ``POST /reports/confirm-uploads``. Report bodies larger than
``COMPRESSION_THRESHOLD`` bytes are gzip-compressed when compression is on.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import gzip
import json
import logging
import re
from typing import TYPE_CHECKING, Any
import uuid

from spekra_reporter import constants
from spekra_reporter.core.models import (
    ConfirmUploadsResponse,
    ReportPayload,
    ReportResponse,
)
from spekra_reporter.core.types import (
    ConfirmUploadsOutcome,
    RequestSpec,
    SendReportOutcome,
)
from spekra_reporter.exceptions import ValidationError
from spekra_reporter.log import ReporterLogger, default_logger

if TYPE_CHECKING:
    import httpx

    from spekra_reporter.client.executor import RetryingRequestExecutor

log = logging.getLogger(__name__)

Compressor = Callable[[bytes], bytes]

_REPORTS_SUFFIX = re.compile(r"/reports/?$")


def confirm_uploads_url(api_url: str) -> str:
    """Derive the confirm endpoint from the reports endpoint."""
    return _REPORTS_SUFFIX.sub("/reports/confirm-uploads", api_url)


def _parse_report(response: httpx.Response) -> ReportResponse:
    return ReportResponse.model_validate(response.json())


def _parse_confirm(response: httpx.Response) -> ConfirmUploadsResponse:
    return ConfirmUploadsResponse.model_validate(response.json())


class ReportDeliveryClient:
    """Sends reports and upload confirmations through the retrying executor."""

    def __init__(
        self,
        executor: RetryingRequestExecutor,
        *,
        api_key: str,
        api_url: str = constants.DEFAULT_API_URL,
        framework: str = "playwright",
        sdk_version: str | None = None,
        compression: bool = True,
        compress: Compressor | None = gzip.compress,
        logger: ReporterLogger | None = None,
        request_id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._executor = executor
        self._api_key = api_key
        self.api_url = api_url
        self.framework = framework
        self.sdk_version = sdk_version or _package_version()
        self.compression = compression
        self._compress = compress
        self._logger = logger or default_logger()
        self._new_request_id = request_id_factory

    @property
    def user_agent(self) -> str:
        return f"@{constants.PRODUCT_NAME}/{self.framework}/{self.sdk_version}"

    async def send_report(
        self, payload: ReportPayload | Mapping[str, Any]
    ) -> SendReportOutcome[ReportResponse]:
        """Send a report, compressing large bodies.

        ``bytes_sent`` is the size actually transmitted; ``bytes_uncompressed``
        is always the size of the serialised JSON.

        Raises:
            ValidationError: If a mapping payload cannot be encoded as JSON.
        """
        request_id = self._new_request_id()
        raw = _serialise(payload).encode("utf-8")
        bytes_uncompressed = len(raw)
        headers = self._build_common_headers(request_id)

        body = raw
        if self.compression and bytes_uncompressed > constants.COMPRESSION_THRESHOLD:
            compressed = self._try_compress(raw)
            if compressed is not None:
                body = compressed
                headers["Content-Encoding"] = constants.CONTENT_ENCODING_GZIP
                self._logger.verbose(
                    "Compressed payload",
                    {"original": bytes_uncompressed, "compressed": len(body)},
                )

        result = await self._executor.execute(
            self.api_url,
            RequestSpec(method="POST", headers=headers, body=body),
            _parse_report,
        )
        return SendReportOutcome(
            success=result.success,
            data=result.data,
            error=result.error,
            latency_ms=result.latency_ms,
            retry_count=result.retry_count,
            request_id=request_id,
            bytes_sent=len(body),
            bytes_uncompressed=bytes_uncompressed,
        )

    async def confirm_uploads(
        self, artifact_ids: Sequence[str]
    ) -> ConfirmUploadsOutcome[ConfirmUploadsResponse]:
        """Tell the API which artifacts reached storage."""
        request_id = self._new_request_id()
        body = _serialise({"artifactIds": list(artifact_ids)})

        result = await self._executor.execute(
            confirm_uploads_url(self.api_url),
            RequestSpec(
                method="POST",
                headers=self._build_common_headers(request_id),
                body=body.encode("utf-8"),
            ),
            _parse_confirm,
        )
        return ConfirmUploadsOutcome(
            success=result.success,
            data=result.data,
            error=result.error,
            latency_ms=result.latency_ms,
            retry_count=result.retry_count,
            request_id=request_id,
        )

    # --- Internal helpers ---

    def _build_common_headers(self, request_id: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "User-Agent": self.user_agent,
            constants.SDK_VERSION_HEADER: self.sdk_version,
            constants.REQUEST_ID_HEADER: request_id,
        }

    def _try_compress(self, raw: bytes) -> bytes | None:
        """Compressed body, or None when compression is unavailable."""
        if self._compress is None:
            return None
        try:
            compressed = self._compress(raw)
        except Exception as e:
            self._logger.warn(
                "Compression failed, sending uncompressed", {"error": str(e)}
            )
            return None
        if not isinstance(compressed, bytes | bytearray):
            self._logger.warn(
                "Compression failed, sending uncompressed",
                {"error": f"compressor returned {type(compressed).__name__}"},
            )
            return None
        return bytes(compressed)


def _package_version() -> str:
    from spekra_reporter import __version__

    return __version__


def _serialise(payload: ReportPayload | Mapping[str, Any]) -> str:
    if isinstance(payload, ReportPayload):
        return payload.to_json()
    if not isinstance(payload, Mapping):
        raise ValidationError(
            "Report payload must be a ReportPayload or a mapping, "
            f"got {type(payload).__name__}"
        )
    try:
        return json.dumps(dict(payload), separators=(",", ":"), default=str)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Report payload is not JSON serialisable: {e}") from e
