"""Configuration management for the Spekra reporter.

Settings are resolved explicitly and passed into the components that need
them; there is no process-wide configuration singleton.

Precedence (highest first):
1. Keyword overrides passed to ``resolve_config``.
2. ``SPEKRA_*`` environment variables.
3. SDK defaults.

Example:
    settings = resolve_config(source="checkout-e2e", debug=True)
    ready, reason = check_ready(settings)
"""

from typing import Any

from .schema import RedactionRule, RedactionSettings, SpekraSettings, resolve_redaction


def resolve_config(**overrides: Any) -> SpekraSettings:
    """Resolve settings from overrides and the environment.

    ``None`` overrides are ignored so callers can forward optional options
    without masking environment values.
    """
    explicit = {k: v for k, v in overrides.items() if v is not None}
    return SpekraSettings(**explicit)


def check_ready(settings: SpekraSettings) -> tuple[bool, str | None]:
    """Report whether the reporter can send, with a reason when it cannot."""
    if not settings.enabled:
        return False, "disabled"
    if not settings.api_key:
        return (
            False,
            "No API key provided. Set api_key option or SPEKRA_API_KEY environment variable.",
        )
    if not settings.source:
        return (
            False,
            "No source provided. Set source option in reporter config "
            "(e.g., source='frontend-e2e').",
        )
    return True, None


__all__ = [
    "RedactionRule",
    "RedactionSettings",
    "SpekraSettings",
    "check_ready",
    "resolve_config",
    "resolve_redaction",
]
