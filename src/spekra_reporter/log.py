"""Consistent ``[Spekra]``-prefixed logging for the reporter.

A thin facade over the standard :mod:`logging` module. Components receive a
``ReporterLogger`` through their constructor; it never raises into the caller
and only emits ``verbose`` messages when debug mode is on.
"""

from __future__ import annotations

import json
import logging
from typing import Any

_DEFAULT_LOGGER_NAME = "spekra_reporter"


def _format_context(context: dict[str, Any] | None) -> str:
    if not context:
        return ""
    parts = []
    for key, value in context.items():
        try:
            rendered = json.dumps(value, default=str)
        except (TypeError, ValueError):
            rendered = repr(value)
        parts.append(f"{key}={rendered}")
    return " ".join(parts)


class ReporterLogger:
    """Logger collaborator shared by clients, services and handlers."""

    def __init__(
        self,
        *,
        debug: bool = False,
        prefix: str = "Spekra",
        logger: logging.Logger | None = None,
    ) -> None:
        self.debug = debug
        self.prefix = prefix
        self._logger = logger or logging.getLogger(_DEFAULT_LOGGER_NAME)

    def info(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Log an info message (always shown)."""
        self._log(logging.INFO, message, context)

    def warn(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Log a warning message (always shown)."""
        self._log(logging.WARNING, message, context)

    def error(
        self,
        message: str,
        error: BaseException | str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log an error message, folding ``error`` into the context."""
        full_context = dict(context or {})
        if error is not None:
            full_context["error"] = str(error)
        self._log(logging.ERROR, message, full_context)

    def verbose(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Log a debug message (only shown when debug mode is enabled)."""
        if self.debug:
            self._log(logging.DEBUG, message, context)

    def _log(
        self, level: int, message: str, context: dict[str, Any] | None
    ) -> None:
        formatted = f"[{self.prefix}] {message}"
        rendered = _format_context(context)
        if rendered:
            formatted = f"{formatted} {rendered}"
        # Handler failures are reported by logging itself (Handler.handleError).
        self._logger.log(level, formatted)


def default_logger() -> ReporterLogger:
    """Return a quiet logger for components constructed without one."""
    return ReporterLogger(debug=False)
