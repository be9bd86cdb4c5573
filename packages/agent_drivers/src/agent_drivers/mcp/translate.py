from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from agent_drivers.mcp.spec import McpConfig, McpServer
from agent_drivers.types import Connector

_SLUG_RE = re.compile(r"[^a-z0-9]")

WarnFn = Callable[[str], None]


def slugify_connector_name(name: str) -> str:
    return _SLUG_RE.sub("-", name.lower())


def _unique_slug(base: str, taken: set[str]) -> str:
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def _noop(_: str) -> None:
    return


def connector_to_server(connector: Connector, *, warn: WarnFn = _noop) -> McpServer | None:
    """
    Map one connector to a server entry, or None when it cannot be used.

    Problems are reported through `warn` and never raised.
    """

    if connector.type == "local":
        parts = (connector.command or "").split()
        if not parts:
            warn("Warning: Skipping local MCP server without a command")
            return None
        try:
            env = connector.decoded_env()
        except ValueError:
            warn("Warning: Failed to parse env for MCP server")
            env = None
        return McpServer(transport="stdio", command=parts[0], args=parts[1:], env=env or {})

    if connector.type == "remote":
        url = (connector.base_url or "").strip()
        if not url:
            warn("Warning: Skipping remote MCP server without a base URL")
            return None
        headers: dict[str, str] = {}
        if connector.oauth_client_secret:
            headers["Authorization"] = f"Bearer {connector.oauth_client_secret}"
        if connector.oauth_client_id:
            headers["X-Client-ID"] = connector.oauth_client_id
        return McpServer(transport="http", url=url, http_headers=headers)

    warn(f"Warning: Skipping MCP server with unsupported type {connector.type!r}")
    return None


def translate_connectors(
    connectors: Iterable[Connector],
    *,
    warn: WarnFn = _noop,
    info: WarnFn = _noop,
) -> McpConfig:
    """
    Translate connectors into an agent-neutral `McpConfig`.

    Entries are keyed by the slug of the connector name. When two names collapse to the same
    slug, later ones get `-2`, `-3`, ... in input order.
    """

    servers: dict[str, McpServer] = {}
    for connector in connectors:
        server = connector_to_server(connector, warn=warn)
        if server is None:
            continue
        base = slugify_connector_name(connector.name) or "server"
        slug = _unique_slug(base, set(servers))
        if slug != base:
            info(f"MCP server name collision on {base!r}; registered as {slug!r}")
        servers[slug] = server
        info("Added local MCP server" if server.transport == "stdio" else "Added remote MCP server")

    config = McpConfig(servers=servers)
    config.validate()
    return config
