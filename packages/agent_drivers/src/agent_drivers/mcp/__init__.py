from agent_drivers.mcp.codex import (
    CodexProvider,
    openai_provider,
    openrouter_provider,
    render_codex_config_toml,
    toml_basic_string,
)
from agent_drivers.mcp.json_configs import (
    dump_json,
    render_claude_mcp_config,
    render_cursor_mcp_config,
    render_gemini_settings,
    render_opencode_config,
)
from agent_drivers.mcp.spec import McpConfig, McpServer
from agent_drivers.mcp.translate import (
    connector_to_server,
    slugify_connector_name,
    translate_connectors,
)

__all__ = [
    "CodexProvider",
    "McpConfig",
    "McpServer",
    "connector_to_server",
    "dump_json",
    "openai_provider",
    "openrouter_provider",
    "render_claude_mcp_config",
    "render_codex_config_toml",
    "render_cursor_mcp_config",
    "render_gemini_settings",
    "render_opencode_config",
    "slugify_connector_name",
    "toml_basic_string",
    "translate_connectors",
]
