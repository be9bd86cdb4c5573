from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

_SERVER_NAME_RE = re.compile(r"^[a-z0-9-]+$")


def _validate_non_empty_str(value: object, *, label: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} must be a non-empty string; got {value!r}.")


@dataclass(frozen=True)
class McpServer:
    """One translated tool server, independent of any agent's on-disk syntax."""

    transport: Literal["stdio", "http"]

    # stdio transport
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    # http transport
    url: str | None = None
    http_headers: dict[str, str] = field(default_factory=dict)

    enabled: bool = True

    def validate(self) -> None:
        transport = self.transport
        if transport not in {"stdio", "http"}:
            raise ValueError(f"transport must be 'stdio' or 'http'; got {transport!r}.")

        if transport == "stdio":
            _validate_non_empty_str(self.command, label="command")
            if self.url is not None:
                raise ValueError("stdio MCP servers must not set url.")
        else:
            _validate_non_empty_str(self.url, label="url")
            if self.command is not None:
                raise ValueError("http MCP servers must not set command.")

        for idx, item in enumerate(self.args):
            _validate_non_empty_str(item, label=f"args[{idx}]")

        for label, mapping in (("http_headers", self.http_headers), ("env", self.env)):
            for key, value in mapping.items():
                _validate_non_empty_str(key, label=f"{label} key")
                if not isinstance(value, str):
                    raise ValueError(f"{label}[{key!r}] must be a string; got {value!r}.")


@dataclass(frozen=True)
class McpConfig:
    servers: dict[str, McpServer] = field(default_factory=dict)

    @property
    def has_remote(self) -> bool:
        return any(s.transport == "http" for s in self.servers.values())

    def validate(self) -> None:
        for name, server in self.servers.items():
            _validate_non_empty_str(name, label="server name")
            if not _SERVER_NAME_RE.match(name):
                raise ValueError(
                    "Server names must contain only lowercase letters, numbers and '-'.\n"
                    f"name={name!r}"
                )
            server.validate()
