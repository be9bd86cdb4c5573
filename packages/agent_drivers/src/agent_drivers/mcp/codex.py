from __future__ import annotations

import json
from dataclasses import dataclass

from agent_drivers.mcp.spec import McpConfig


@dataclass(frozen=True)
class CodexProvider:
    """One `[model_providers.<id>]` table; `env_key` names the variable holding the key."""

    id: str
    name: str
    base_url: str
    env_key: str
    wire_api: str


OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"


def openrouter_provider(env_key: str) -> CodexProvider:
    return CodexProvider("openrouter", "OpenRouter", OPENROUTER_BASE_URL, env_key, "chat")


def openai_provider(env_key: str) -> CodexProvider:
    return CodexProvider("openai", "OpenAI", OPENAI_BASE_URL, env_key, "responses")


def toml_basic_string(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)


def _toml_str_array(values: list[str]) -> str:
    return "[" + ", ".join(toml_basic_string(v) for v in values) + "]"


def _toml_inline_table(values: dict[str, str]) -> str:
    parts: list[str] = []
    for key in sorted(values.keys()):
        parts.append(f"{toml_basic_string(key)} = {toml_basic_string(values[key])}")
    return "{ " + ", ".join(parts) + " }"


def render_codex_config_toml(mcp: McpConfig, *, model: str, provider: CodexProvider) -> str:
    """
    Return the full `~/.codex/config.toml` document.

    Layout:
    - top-level keys (`experimental_use_rmcp_client` only when a remote server exists)
    - [model_providers.<id>]
    - [mcp_servers.<name>] per server, with a nested [mcp_servers.<name>.env] table
    """

    mcp.validate()

    lines: list[str] = []
    if mcp.has_remote:
        lines.append("experimental_use_rmcp_client = true")
    lines.append(f"model = {toml_basic_string(model)}")
    lines.append(f"model_provider = {toml_basic_string(provider.id)}")
    lines.append("")

    lines.append(f"[model_providers.{provider.id}]")
    lines.append(f"name = {toml_basic_string(provider.name)}")
    lines.append(f"base_url = {toml_basic_string(provider.base_url)}")
    lines.append(f"env_key = {toml_basic_string(provider.env_key)}")
    lines.append(f"wire_api = {toml_basic_string(provider.wire_api)}")
    lines.append("")

    # Insertion order is the connector order.
    for name, server in mcp.servers.items():
        lines.append(f"[mcp_servers.{name}]")
        if server.transport == "stdio":
            assert server.command is not None
            lines.append(f"command = {toml_basic_string(server.command)}")
            if server.args:
                lines.append(f"args = {_toml_str_array(server.args)}")
        else:
            assert server.url is not None
            lines.append(f"url = {toml_basic_string(server.url)}")
            if server.http_headers:
                lines.append(f"http_headers = {_toml_inline_table(server.http_headers)}")

        if server.env:
            lines.append("")
            lines.append(f"[mcp_servers.{name}.env]")
            for key in sorted(server.env.keys()):
                lines.append(f"{toml_basic_string(key)} = {toml_basic_string(server.env[key])}")

        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
