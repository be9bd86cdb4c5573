from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from agent_drivers.errors import ConfigError
from agent_drivers.types import Connector

_CONFIG_VERSION = 1

AGENT_IDS: tuple[str, ...] = ("codex", "claude", "gemini", "opencode", "cursor")

CONNECTOR_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["name", "type"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "type": {"enum": ["local", "remote"]},
        "command": {"type": ["string", "null"]},
        "env": {
            "anyOf": [
                {"type": "null"},
                {"type": "string"},
                {"type": "object", "additionalProperties": {"type": "string"}},
            ]
        },
        "base_url": {"type": ["string", "null"]},
        "baseUrl": {"type": ["string", "null"]},
        "oauth_client_id": {"type": ["string", "null"]},
        "oauthClientId": {"type": ["string", "null"]},
        "oauth_client_secret": {"type": ["string", "null"]},
        "oauthClientSecret": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True)
class AgentSettings:
    """Deployment overrides for one agent; unset fields keep the driver's defaults."""

    binary: str | None = None
    install_command: tuple[str, ...] | None = None
    default_model: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


def _load_yaml_document(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}", code="read_failed") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {path}: {e}", code="parse_failed") from e


def _ensure_no_unknown_keys(*, data: Mapping[str, Any], allowed: set[str], where: str) -> None:
    unknown = set(data) - allowed
    if not unknown:
        return
    unknown_list = ", ".join(sorted(str(k) for k in unknown))
    allowed_list = ", ".join(sorted(allowed))
    raise ConfigError(
        f"Unknown keys in {where}: {unknown_list}. Allowed: {allowed_list}.",
        code="unknown_keys",
        details={"unknown": sorted(str(k) for k in unknown)},
    )


def _optional_str(value: Any, *, where: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Expected non-empty string for {where}.", code="invalid_type")
    return value.strip()


def _parse_install_command(value: Any, *, where: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split()
    if not isinstance(value, list) or not value:
        raise ConfigError(f"Expected a non-empty list for {where}.", code="invalid_type")
    out: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(
                f"Expected non-empty string for {where}[{idx}].", code="invalid_type"
            )
        out.append(item)
    return tuple(out)


def _parse_env(value: Any, *, where: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"Expected a mapping for {where}.", code="invalid_type")
    out: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigError(f"Expected non-empty string keys in {where}.", code="invalid_type")
        if isinstance(item, bool):
            item = "true" if item else "false"
        if not isinstance(item, (str, int, float)):
            raise ConfigError(f"Expected a scalar for {where}.{key}.", code="invalid_type")
        out[key] = str(item)
    return out


def parse_agents_config(data: Any, *, source: str = "<agents config>") -> dict[str, AgentSettings]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping in {source}, got {type(data).__name__}.",
            code="invalid_type",
        )
    _ensure_no_unknown_keys(data=data, allowed={"version", "agents"}, where=source)

    version = data.get("version", _CONFIG_VERSION)
    if version != _CONFIG_VERSION:
        raise ConfigError(
            f"Unsupported config version in {source}: {version!r} (expected {_CONFIG_VERSION}).",
            code="unsupported_version",
        )

    agents = data.get("agents") or {}
    if not isinstance(agents, dict):
        raise ConfigError(f"Expected a mapping for agents in {source}.", code="invalid_type")

    out: dict[str, AgentSettings] = {}
    for agent_id, raw in agents.items():
        if agent_id not in AGENT_IDS:
            raise ConfigError(
                f"Unknown agent {agent_id!r} in {source}.\n"
                f"known_agents={', '.join(AGENT_IDS)}",
                code="unknown_agent",
            )
        raw = raw or {}
        where = f"{source}: agents.{agent_id}"
        if not isinstance(raw, dict):
            raise ConfigError(f"Expected a mapping for {where}.", code="invalid_type")
        _ensure_no_unknown_keys(
            data=raw, allowed={"binary", "install_command", "default_model", "env"}, where=where
        )
        out[agent_id] = AgentSettings(
            binary=_optional_str(raw.get("binary"), where=f"{where}.binary"),
            install_command=_parse_install_command(
                raw.get("install_command"), where=f"{where}.install_command"
            ),
            default_model=_optional_str(raw.get("default_model"), where=f"{where}.default_model"),
            env=_parse_env(raw.get("env"), where=f"{where}.env"),
        )
    return out


def load_agents_config(path: Path) -> dict[str, AgentSettings]:
    return parse_agents_config(_load_yaml_document(path), source=str(path))


def validate_connector_records(records: Any) -> list[str]:
    """Return every schema violation as `$.path: message`; empty when valid."""

    if not isinstance(records, list):
        return [f"$: expected a list of connectors, got {type(records).__name__}"]
    validator = Draft202012Validator(CONNECTOR_SCHEMA)
    formatted: list[str] = []
    for idx, record in enumerate(records):
        errors = sorted(validator.iter_errors(record), key=lambda e: str(e.path))
        for error in errors:
            path = f"$[{idx}]"
            for part in error.path:
                path += f"[{part!r}]" if isinstance(part, int) else f".{part}"
            formatted.append(f"{path}: {error.message}")
    return formatted


def parse_connectors(records: Any, *, source: str = "<connectors>") -> list[Connector]:
    if isinstance(records, dict) and "connectors" in records:
        records = records["connectors"]
    if records is None:
        return []
    problems = validate_connector_records(records)
    if problems:
        raise ConfigError(
            f"Invalid connectors in {source}:\n" + "\n".join(problems),
            code="invalid_connectors",
            details={"errors": problems},
        )
    return [Connector.from_mapping(record) for record in records]


def load_connectors(path: Path) -> list[Connector]:
    """
    Load connectors from a JSON or YAML file.

    The document is either a list of connector records or a mapping with a `connectors` list.
    """

    if path.suffix.lower() == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}", code="read_failed") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse JSON in {path}: {e}", code="parse_failed") from e
    else:
        data = _load_yaml_document(path)
    return parse_connectors(data, source=str(path))
