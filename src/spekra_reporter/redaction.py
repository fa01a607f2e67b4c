"""PII and secret redaction for text that leaves the machine.

Applies an ordered list of regular expressions to error messages, console
output, URLs and other free text, replacing every hit with ``[REDACTED]``.
Rules run sequentially over the output of the previous rule; the result is
not re-scanned.

The built-in rule set covers common credentials and personal data. Custom
rules are either literal strings (escaped, matched case-insensitively) or
compiled ``re.Pattern`` objects, used as supplied.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import SplitResult, unquote_plus, urlsplit, urlunsplit

from spekra_reporter import constants
from spekra_reporter.log import ReporterLogger, default_logger

if TYPE_CHECKING:
    from spekra_reporter.config.schema import RedactionRule, RedactionSettings

log = logging.getLogger(__name__)

_URL_PLACEHOLDER = "%5BREDACTED%5D"


@dataclasses.dataclass(frozen=True, slots=True)
class _Rule:
    pattern: re.Pattern[str]

    def apply(self, text: str) -> str:
        return self.pattern.sub(constants.REDACTION_PLACEHOLDER, text)


_KEYED_TOKEN = re.compile(r"\b[A-Za-z0-9_-]{20,}\b(?!\Z)", re.IGNORECASE | re.ASCII)
_KEY_HINT = re.compile(r"(?=key|token|secret|api)", re.IGNORECASE | re.ASCII)


class _KeyedTokenRule:
    """Long tokens followed by a key-ish word somewhere later on the same line.

    Matches what ``\\b[A-Za-z0-9_-]{20,}\\b(?=.*(key|token|secret|api))`` would,
    without rescanning the rest of the line for every candidate token: each
    line is searched once for its last keyword, and tokens are only matched
    up to that position.
    """

    def apply(self, text: str) -> str:
        lines = text.split("\n")
        for i, line in enumerate(lines):
            last = -1
            for m in _KEY_HINT.finditer(line):
                last = m.start()
            if last < 0:
                continue
            out: list[str] = []
            pos = 0
            # endpos keeps the keyword's first char visible so \b at `last`
            # behaves as on the full line; (?!\Z) forbids ending past it
            for m in _KEYED_TOKEN.finditer(line, 0, last + 1):
                out.append(line[pos : m.start()])
                out.append(constants.REDACTION_PLACEHOLDER)
                pos = m.end()
            out.append(line[pos:])
            lines[i] = "".join(out)
        return "\n".join(lines)


# Ordered; earlier rules see the raw text, later ones the partially redacted text.
BUILTIN_RULES: tuple[_Rule | _KeyedTokenRule, ...] = (
    _KeyedTokenRule(),
    # Prefixed secrets: sk_live_..., api_key_..., token-...
    _Rule(
        re.compile(
            r"\b(sk|pk|api|key|token|secret|password|pwd|auth)[_-]?[A-Za-z0-9_-]{16,}\b",
            re.IGNORECASE | re.ASCII,
        )
    ),
    # Bearer tokens
    _Rule(
        re.compile(
            r"Bearer\s+[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+",
            re.IGNORECASE | re.ASCII,
        )
    ),
    # JWTs
    _Rule(re.compile(r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")),
    # Email addresses
    _Rule(
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", re.ASCII)
    ),
    # Card numbers
    _Rule(re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b", re.ASCII)),
    # US social security numbers
    _Rule(re.compile(r"\b\d{3}-\d{2}-\d{4}\b", re.ASCII)),
    # Phone numbers
    _Rule(
        re.compile(
            r"\b(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b", re.ASCII
        )
    ),
    # AWS access key ids
    _Rule(re.compile(r"\bAKIA[0-9A-Z]{16}\b", re.ASCII)),
    # GitHub tokens
    _Rule(re.compile(r"\b(ghp|gho|ghu|ghs|ghr)_[A-Za-z0-9_]{36,}\b", re.ASCII)),
    # Credentials embedded in URLs
    _Rule(re.compile(r"(://[^:]+:)[^@]+(@)")),
)


def _compile_custom(rule: RedactionRule) -> _Rule:
    if isinstance(rule, re.Pattern):
        return _Rule(rule)
    if isinstance(rule, str):
        return _Rule(re.compile(re.escape(rule), re.IGNORECASE))
    raise TypeError(
        f"Redaction rules must be str or re.Pattern, got {type(rule).__name__}"
    )


@dataclasses.dataclass(frozen=True, slots=True)
class RedactionConfig:
    """Redaction engine configuration."""

    enabled: bool = True
    custom_rules: tuple[RedactionRule, ...] = ()
    replace_builtins: bool = False
    max_input_length: int = constants.MAX_REDACTION_INPUT_LENGTH

    @classmethod
    def from_settings(cls, settings: RedactionSettings) -> RedactionConfig:
        return cls(
            enabled=settings.enabled,
            custom_rules=tuple(settings.rules),
            replace_builtins=settings.replace_builtins,
        )


class RedactionEngine:
    """Redacts secrets and PII from strings, string lists and URLs.

    Stateless after construction; safe to share across concurrent callers.
    """

    def __init__(
        self,
        config: RedactionConfig | None = None,
        logger: ReporterLogger | None = None,
    ) -> None:
        self._config = config or RedactionConfig()
        self._logger = logger or default_logger()
        builtins = () if self._config.replace_builtins else BUILTIN_RULES
        self._rules: tuple[_Rule | _KeyedTokenRule, ...] = builtins + tuple(
            _compile_custom(rule) for rule in self._config.custom_rules
        )

        if self._config.enabled:
            self._logger.verbose(
                "Redaction enabled",
                {
                    "patternCount": len(self._rules),
                    "customPatterns": len(self._config.custom_rules),
                    "builtInReplaced": self._config.replace_builtins,
                },
            )
        else:
            self._logger.warn("Redaction DISABLED - PII may be sent to server")

    @property
    def is_enabled(self) -> bool:
        return self._config.enabled

    @property
    def pattern_count(self) -> int:
        return len(self._rules)

    def redact(self, text: str | None) -> str | None:
        """Replace every rule match in ``text`` with ``[REDACTED]``.

        ``None`` and ``""`` pass through unchanged, as does everything when
        redaction is disabled. Inputs longer than ``max_input_length`` are
        truncated to that length first.
        """
        if not self._config.enabled or not text:
            return text

        limit = self._config.max_input_length
        if len(text) > limit:
            self._logger.warn(
                "Redaction input truncated", {"length": len(text), "limit": limit}
            )
            text = text[:limit]

        for rule in self._rules:
            text = rule.apply(text)
        return text

    def redact_array(self, items: list[str]) -> list[str]:
        """Redact each item; empty or ``None`` items become ``""``.

        When disabled, the same sequence object is returned.
        """
        if not self._config.enabled:
            return items
        return [self.redact(item) or "" for item in items]

    def redact_url(self, url: str | None) -> str | None:
        """Blank URL passwords and sensitive query parameter values.

        Strings that do not parse as an absolute URL (scheme and host) go
        through :meth:`redact` instead.
        """
        if not self._config.enabled or not url:
            return url

        try:
            parts = urlsplit(url)
        except ValueError:
            return self.redact(url)
        if not parts.scheme or not parts.netloc:
            return self.redact(url)

        return urlunsplit(
            parts._replace(
                netloc=_redact_netloc(parts),
                query=_redact_query(parts.query),
            )
        )


def _redact_netloc(parts: SplitResult) -> str:
    if not parts.password or "@" not in parts.netloc:
        return parts.netloc
    userinfo, _, hostport = parts.netloc.rpartition("@")
    username = userinfo.partition(":")[0]
    return f"{username}:{_URL_PLACEHOLDER}@{hostport}"


def _redact_query(query: str) -> str:
    if not query:
        return query
    pairs = []
    for pair in query.split("&"):
        name = pair.partition("=")[0]
        if unquote_plus(name) in constants.SENSITIVE_QUERY_PARAMS:
            pairs.append(f"{name}={_URL_PLACEHOLDER}")
        else:
            pairs.append(pair)
    return "&".join(pairs)
