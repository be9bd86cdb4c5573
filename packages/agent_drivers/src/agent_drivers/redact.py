from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from agent_drivers.credentials import Credentials
from agent_drivers.types import Connector

REDACTED = "[REDACTED]"
MIN_SUBSTRING_LENGTH = 8

_TOKEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"sk-ant-[A-Za-z0-9_-]{8,}"),
    re.compile(r"sk-or-[A-Za-z0-9_-]{8,}"),
    re.compile(r"\bsk-[A-Za-z0-9_-]{16,}"),
    re.compile(r"AIza[0-9A-Za-z_-]{20,}"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}"),
    re.compile(r"github_pat_[A-Za-z0-9_]{20,}"),
)
_BEARER_RE = re.compile(r"(\bBearer\s+)(?!\[REDACTED\])[^\s\"',}\]]+", re.IGNORECASE)
_ASSIGNMENT_RE = re.compile(
    r"\b([A-Za-z0-9_]*(?:API_KEY|TOKEN|SECRET|PASSWORD)[A-Za-z0-9_]*)(\s*=\s*)([\"']?)[^\s\"']+",
    re.IGNORECASE,
)
_SENSITIVE_ENV_KEY_RE = re.compile(r"(KEY|TOKEN|SECRET|PASSWORD|AUTH)", re.IGNORECASE)


def connector_secret_values(connectors: Iterable[Connector]) -> list[str]:
    """Secrets a connector list carries: OAuth secrets and env values under sensitive keys."""

    out: list[str] = []
    for connector in connectors:
        if connector.oauth_client_secret:
            out.append(connector.oauth_client_secret)
        try:
            env = connector.decoded_env()
        except ValueError:
            continue
        for key, value in (env or {}).items():
            if value and _SENSITIVE_ENV_KEY_RE.search(key):
                out.append(value)
    return out


@dataclass(frozen=True)
class SecretRedactor:
    """
    Scrub secrets from text before it reaches a log sink.

    Literal values of `MIN_SUBSTRING_LENGTH` characters or more are removed wherever they
    occur (including inside shell command strings). Shorter values are removed only where
    they stand alone as a token, so a one-letter secret does not shred ordinary words; the
    `Bearer` and `KEY=value` patterns still catch them in those forms. Well-known token shapes
    are removed even when their value was never configured.
    """

    secrets: tuple[str, ...] = ()
    _literal_re: re.Pattern[str] | None = field(
        default=None, init=False, repr=False, compare=False
    )
    _short_re: re.Pattern[str] | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        values = {s for s in self.secrets if isinstance(s, str) and s}
        unique = sorted(values, key=len, reverse=True)
        object.__setattr__(self, "secrets", tuple(unique))
        long_values = [s for s in unique if len(s) >= MIN_SUBSTRING_LENGTH]
        short_values = [s for s in unique if len(s) < MIN_SUBSTRING_LENGTH]
        if long_values:
            pattern = re.compile("|".join(re.escape(s) for s in long_values))
            object.__setattr__(self, "_literal_re", pattern)
        if short_values:
            alternatives = "|".join(re.escape(s) for s in short_values)
            pattern = re.compile(rf"(?<![^\s\"=:])(?:{alternatives})(?![^\s\"',;}}\]])")
            object.__setattr__(self, "_short_re", pattern)

    @classmethod
    def for_invocation(
        cls,
        credentials: Credentials | None = None,
        connectors: Sequence[Connector] = (),
        extra: Iterable[str] = (),
    ) -> SecretRedactor:
        values: list[str] = []
        if credentials is not None:
            values.extend(credentials.secret_values())
        values.extend(connector_secret_values(connectors))
        values.extend(extra)
        return cls(secrets=tuple(values))

    def redact(self, text: str) -> str:
        if not text:
            return text
        out = text
        if self._literal_re is not None:
            out = self._literal_re.sub(REDACTED, out)
        if self._short_re is not None:
            out = self._short_re.sub(REDACTED, out)
        for pattern in _TOKEN_PATTERNS:
            out = pattern.sub(REDACTED, out)
        out = _BEARER_RE.sub(lambda m: m.group(1) + REDACTED, out)
        out = _ASSIGNMENT_RE.sub(
            lambda m: f"{m.group(1)}{m.group(2)}{m.group(3)}{REDACTED}", out
        )
        return out


def redact_sensitive_info(text: str, secrets: Iterable[str] = ()) -> str:
    return SecretRedactor(secrets=tuple(secrets)).redact(text)
