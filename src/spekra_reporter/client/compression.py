"""Gzip helpers for report bodies and artifacts.

Files whose content type or extension marks them as already compressed
(zip traces, webm videos, ...) pass through unchanged.
"""

from __future__ import annotations

import asyncio
import dataclasses
import gzip
from pathlib import Path

from spekra_reporter.constants import CONTENT_ENCODING_GZIP
from spekra_reporter.core.models import is_pre_compressed
from spekra_reporter.log import ReporterLogger, default_logger


@dataclasses.dataclass(frozen=True, slots=True)
class CompressionResult:
    original_path: Path
    data: bytes
    original_size: int
    final_size: int
    was_compressed: bool
    content_encoding: str | None


def compress_data(data: bytes | str) -> bytes:
    """Gzip ``data``; strings are encoded as UTF-8 first."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return gzip.compress(data)


def format_bytes(size: int) -> str:
    """Human-readable size, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB")
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{value:.{1 if i > 0 else 0}f} {units[i]}"


class CompressionService:
    """Compresses artifact files that are not already compressed."""

    def __init__(self, logger: ReporterLogger | None = None) -> None:
        self._logger = logger or default_logger()

    def is_pre_compressed(self, content_type: str, path: str | Path) -> bool:
        return is_pre_compressed(content_type, path)

    async def compress_file(
        self, path: str | Path, content_type: str
    ) -> CompressionResult:
        """Read ``path`` and gzip it unless it is already compressed."""
        file_path = Path(path)
        data = await asyncio.to_thread(file_path.read_bytes)
        original_size = len(data)

        if self.is_pre_compressed(content_type, file_path):
            self._logger.verbose(
                "Skipping compression for pre-compressed file",
                {
                    "file": file_path.name,
                    "contentType": content_type,
                    "size": original_size,
                },
            )
            return CompressionResult(
                original_path=file_path,
                data=data,
                original_size=original_size,
                final_size=original_size,
                was_compressed=False,
                content_encoding=None,
            )

        compressed = compress_data(data)
        ratio = (1 - len(compressed) / original_size) * 100 if original_size else 0.0
        self._logger.verbose(
            "Compressed file",
            {
                "file": file_path.name,
                "originalSize": original_size,
                "compressedSize": len(compressed),
                "ratio": f"{ratio:.1f}%",
            },
        )
        return CompressionResult(
            original_path=file_path,
            data=compressed,
            original_size=original_size,
            final_size=len(compressed),
            was_compressed=True,
            content_encoding=CONTENT_ENCODING_GZIP,
        )

    def calculate_total_size(self, paths: list[str | Path]) -> int:
        """Sum of file sizes; unreadable files are skipped."""
        total = 0
        for path in paths:
            try:
                total += Path(path).stat().st_size
            except OSError:
                self._logger.verbose(
                    "Could not stat file for size calculation", {"file": str(path)}
                )
        return total
