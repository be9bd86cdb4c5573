from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

KNOWN_CREDENTIALS: tuple[str, ...] = (
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GOOGLE_GENAI_USE_VERTEXAI",
    "GOOGLE_CLOUD_PROJECT",
    "CURSOR_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_API_BASE",
)

# Inputs that select behaviour but are not secret material.
_NON_SECRET: frozenset[str] = frozenset(
    {"GOOGLE_GENAI_USE_VERTEXAI", "GOOGLE_CLOUD_PROJECT", "OPENAI_BASE_URL", "OPENAI_API_BASE"}
)


@dataclass(frozen=True)
class Credentials:
    """
    Immutable credential inputs for one invocation.

    Drivers never read `os.environ` directly; callers build this once (for example with
    `Credentials.from_env()`) and pass it in, so concurrent invocations can carry different
    keys.
    """

    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: dict[str, str] = {}
        for key, value in dict(self.values).items():
            if not isinstance(key, str) or not isinstance(value, str):
                continue
            if not value.strip():
                continue
            cleaned[key] = value.strip()
        object.__setattr__(self, "values", MappingProxyType(cleaned))

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> Credentials:
        return cls(values={k: v for k, v in data.items() if k in KNOWN_CREDENTIALS})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Credentials:
        return cls.from_mapping(os.environ if environ is None else environ)

    def get(self, name: str) -> str | None:
        return self.values.get(name)

    def has(self, name: str) -> bool:
        return name in self.values

    def secret_values(self) -> list[str]:
        return [v for k, v in self.values.items() if k not in _NON_SECRET]

    def names(self) -> list[str]:
        return sorted(self.values)
