"""Basic exceptions for the Spekra reporter"""  # noqa: D415

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from spekra_reporter.core.types import ErrorKind


class SpekraError(Exception):
    """Base exception for Spekra reporter errors"""  # noqa: D415


class ConfigurationError(SpekraError):
    """Raised when client or reporter settings are malformed"""  # noqa: D415


class ValidationError(SpekraError):
    """Raised when caller-supplied input fails validation"""  # noqa: D415


class DeliveryError(SpekraError):
    """A report or upload could not be delivered.

    Carries the machine-checkable error kind alongside the human-readable
    message so pipeline callers can branch without parsing strings.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        *,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.request_id = request_id
