from __future__ import annotations

import json
from typing import Any

from agent_drivers.mcp.spec import McpConfig, McpServer

OPENCODE_SCHEMA_URL = "https://opencode.ai/config.json"


def dump_json(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def _mcp_servers_block(mcp: McpConfig) -> dict[str, Any]:
    """`mcpServers` in the shape shared by the Claude and Cursor CLIs."""

    out: dict[str, Any] = {}
    for name, server in mcp.servers.items():
        if server.transport == "stdio":
            entry: dict[str, Any] = {"command": server.command, "args": list(server.args)}
            if server.env:
                entry["env"] = dict(server.env)
        else:
            entry = {"type": "http", "url": server.url}
            if server.http_headers:
                entry["headers"] = dict(server.http_headers)
        out[name] = entry
    return out


def render_claude_mcp_config(mcp: McpConfig) -> dict[str, Any]:
    mcp.validate()
    return {"mcpServers": _mcp_servers_block(mcp)}


def render_cursor_mcp_config(mcp: McpConfig) -> dict[str, Any]:
    mcp.validate()
    return {"mcpServers": _mcp_servers_block(mcp)}


def render_gemini_settings(mcp: McpConfig, *, auth_type: str) -> dict[str, Any]:
    """
    Build `~/.gemini/settings.json`.

    Only the auth type is recorded; the key itself reaches the CLI through the environment.
    """

    mcp.validate()
    servers: dict[str, Any] = {}
    for name, server in mcp.servers.items():
        if server.transport == "stdio":
            entry: dict[str, Any] = {"command": server.command, "args": list(server.args)}
            if server.env:
                entry["env"] = dict(server.env)
        else:
            entry = {"httpUrl": server.url}
            if server.http_headers:
                entry["headers"] = dict(server.http_headers)
        servers[name] = entry
    document: dict[str, Any] = {"selectedAuthType": auth_type}
    if servers:
        document["mcpServers"] = servers
    return document


def _opencode_entry(server: McpServer) -> dict[str, Any]:
    if server.transport == "stdio":
        assert server.command is not None
        entry: dict[str, Any] = {
            "type": "local",
            "command": [server.command, *server.args],
            "enabled": server.enabled,
        }
        if server.env:
            entry["environment"] = dict(server.env)
        return entry
    entry = {"type": "remote", "url": server.url, "enabled": server.enabled}
    if server.http_headers:
        entry["headers"] = dict(server.http_headers)
    return entry


def render_opencode_config(mcp: McpConfig, *, model: str | None = None) -> dict[str, Any]:
    mcp.validate()
    document: dict[str, Any] = {"$schema": OPENCODE_SCHEMA_URL}
    if model:
        document["model"] = model
    document["mcp"] = {name: _opencode_entry(s) for name, s in mcp.servers.items()}
    return document
