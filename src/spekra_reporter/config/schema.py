"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces reporter
configuration from the environment (``SPEKRA_`` prefix) and programmatic
overrides into concrete values with the SDK defaults.

Numeric settings that are out of range do not fail the host's test run: they
fall back to their defaults with a logged warning.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from spekra_reporter import constants

log = logging.getLogger(__name__)

RedactionRule = str | re.Pattern[str]


class RedactionSettings(BaseModel):
    """Resolved redaction options.

    ``rules`` holds literal strings (matched case-insensitively) and compiled
    regular expressions (used as supplied).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    enabled: bool = True
    rules: tuple[Any, ...] = ()
    replace_builtins: bool = False

    @field_validator("rules", mode="before")
    @classmethod
    def check_rules(cls, v: Any) -> tuple[RedactionRule, ...]:
        """Accept only strings and compiled patterns."""
        rules = tuple(v or ())
        for rule in rules:
            if not isinstance(rule, str | re.Pattern):
                raise ValueError(
                    f"Redaction rules must be str or compiled re.Pattern, got {type(rule).__name__}"
                )
        return rules


def resolve_redaction(value: Any) -> RedactionSettings:
    """Resolve the accepted redaction input shapes.

    - ``None`` / ``True``: enabled with built-in rules
    - ``False``: disabled
    - list/tuple of rules: enabled, rules added to the built-ins
    - mapping or ``RedactionSettings``: full configuration
    """
    if isinstance(value, RedactionSettings):
        return value
    if value is None or value is True:
        return RedactionSettings()
    if value is False:
        return RedactionSettings(enabled=False)
    if isinstance(value, list | tuple):
        return RedactionSettings(rules=tuple(value))
    if isinstance(value, Mapping):
        return RedactionSettings(
            enabled=value.get("enabled", True),
            rules=tuple(value.get("rules", value.get("patterns", ())) or ()),
            replace_builtins=value.get(
                "replace_builtins", value.get("replaceBuiltIn", False)
            ),
        )
    raise ValueError(f"Unsupported redaction configuration: {value!r}")


_NUMERIC_DEFAULTS: dict[str, int] = {
    "batch_size": constants.BATCH_SIZE,
    "timeout_ms": constants.TIMEOUT_MS,
    "max_retries": constants.MAX_RETRIES,
}


class SpekraSettings(BaseSettings):
    """Pydantic settings schema for the Spekra reporter.

    Handles validation, type coercion and defaults for every option. Values
    are read from ``SPEKRA_*`` environment variables unless passed explicitly.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPEKRA_",
        env_file=None,
        case_sensitive=False,
        extra="ignore",
        arbitrary_types_allowed=True,
    )

    # --- Identity ---

    api_key: str = Field(default="", description="Spekra API key")
    source: str = Field(
        default="",
        description="Stable identifier grouping runs of one test suite",
    )
    api_url: str = Field(default=constants.DEFAULT_API_URL, min_length=1)
    framework: Literal["playwright", "jest", "vitest"] = "playwright"

    # --- Behaviour ---

    enabled: bool = True
    debug: bool = False
    compression: bool = True
    redact: RedactionSettings = Field(default_factory=RedactionSettings)

    # --- Limits and resilience ---

    batch_size: int = constants.BATCH_SIZE
    timeout_ms: int = constants.TIMEOUT_MS
    max_retries: int = constants.MAX_RETRIES
    retry_base_delay_ms: int = Field(default=constants.RETRY_BASE_DELAY_MS, ge=0)
    retry_max_delay_ms: int = Field(default=constants.RETRY_MAX_DELAY_MS, ge=0)
    upload_concurrency: int = Field(default=constants.UPLOAD_CONCURRENCY, ge=1)
    max_error_length: int = Field(default=constants.MAX_ERROR_LENGTH, ge=1)
    max_stack_trace_lines: int = Field(default=constants.MAX_STACK_TRACE_LINES, ge=0)
    max_buffer_size: int = Field(default=constants.MAX_BUFFER_SIZE, ge=1)

    # --- Validation Rules ---

    @field_validator("redact", mode="before")
    @classmethod
    def parse_redact(cls, v: Any) -> RedactionSettings:
        """Accept bool, rule list, mapping or RedactionSettings."""
        return resolve_redaction(v)

    @field_validator("batch_size", "timeout_ms", "max_retries", mode="after")
    @classmethod
    def fallback_invalid_numbers(cls, v: int, info: ValidationInfo) -> int:
        """Replace out-of-range values with defaults instead of failing."""
        name = info.field_name or ""
        default = _NUMERIC_DEFAULTS[name]
        invalid = (
            (name == "batch_size" and not 0 < v <= constants.MAX_BATCH_SIZE)
            or (name == "timeout_ms" and v <= 0)
            or (name == "max_retries" and v < 0)
        )
        if invalid:
            log.warning(
                "Invalid %s, using default (value=%r default=%r)", name, v, default
            )
            return default
        return v
