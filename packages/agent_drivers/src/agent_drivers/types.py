from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from sandbox_runner import ExecutionEnvironment

    from agent_drivers.credentials import Credentials
    from agent_drivers.task_logger import TaskLogger

LogKind = Literal["command", "info", "error", "success"]
ConnectorType = Literal["local", "remote"]

_CONNECTOR_KEY_ALIASES: dict[str, str] = {
    "baseUrl": "base_url",
    "oauthClientId": "oauth_client_id",
    "oauthClientSecret": "oauth_client_secret",
}


@dataclass(frozen=True)
class LogEntry:
    kind: LogKind
    text: str


@dataclass(frozen=True)
class Connector:
    """
    A tool server an agent may call: a local process or a remote HTTP endpoint.

    `env` is kept exactly as received (the registry stores it as a serialized JSON object);
    use `decoded_env()` to read it.
    """

    name: str
    type: ConnectorType
    command: str | None = None
    env: str | Mapping[str, str] | None = None
    base_url: str | None = None
    oauth_client_id: str | None = None
    oauth_client_secret: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Connector:
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            normalized[_CONNECTOR_KEY_ALIASES.get(key, key)] = value
        return cls(
            name=str(normalized.get("name", "")),
            type=normalized.get("type", "local"),
            command=normalized.get("command"),
            env=normalized.get("env"),
            base_url=normalized.get("base_url"),
            oauth_client_id=normalized.get("oauth_client_id"),
            oauth_client_secret=normalized.get("oauth_client_secret"),
        )

    def decoded_env(self) -> dict[str, str] | None:
        """
        Return the env map, or None when absent.

        Raises ValueError when `env` is present but is not a JSON object of strings.
        """

        raw = self.env
        if raw is None:
            return None
        if isinstance(raw, str):
            if not raw.strip():
                return None
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValueError(f"env for connector {self.name!r} is not valid JSON.") from e
        else:
            parsed = raw
        if not isinstance(parsed, Mapping):
            raise ValueError(f"env for connector {self.name!r} must be a JSON object.")
        out: dict[str, str] = {}
        for key, value in parsed.items():
            if not isinstance(key, str) or not key.strip():
                raise ValueError(f"env for connector {self.name!r} has an empty key.")
            out[key] = value if isinstance(value, str) else json.dumps(value)
        return out or None


@dataclass(frozen=True)
class AgentExecutionResult:
    success: bool
    cli_name: str
    changes_detected: bool = False
    output: str | None = None
    agent_response: str | None = None
    error: str | None = None
    session_id: str | None = None
    logs: tuple[LogEntry, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "cli_name": self.cli_name,
            "changes_detected": self.changes_detected,
        }
        for key in ("output", "agent_response", "error", "session_id"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.logs:
            payload["logs"] = [{"kind": e.kind, "text": e.text} for e in self.logs]
        return payload

    def truncated(self, limit: int = 4000) -> AgentExecutionResult:
        """Return a copy with long text fields clipped for display."""

        def _clip(value: str | None) -> str | None:
            if value is None or len(value) <= limit:
                return value
            return value[: max(0, limit - 3)] + "..."

        return replace(
            self,
            output=_clip(self.output),
            agent_response=_clip(self.agent_response),
            error=_clip(self.error),
        )


@dataclass(frozen=True)
class DriverInvocation:
    env: ExecutionEnvironment
    instruction: str
    logger: TaskLogger | None
    credentials: Credentials
    selected_model: str | None = None
    connectors: Sequence[Connector] = field(default_factory=tuple)
    is_resumed: bool = False
    session_id: str | None = None
    cancel_check: Callable[[], bool] | None = None
