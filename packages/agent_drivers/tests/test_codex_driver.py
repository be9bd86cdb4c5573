from __future__ import annotations

import tomllib
from typing import Any

from agent_drivers import CodexDriver, Connector, Credentials, MemoryTaskLogger

OPENROUTER_KEY = "sk-or-v1-" + "1" * 40
OPENAI_KEY = "sk-proj-" + "2" * 40


def _run(env: Any, creds: dict[str, str], **kwargs: Any) -> Any:
    logger = kwargs.pop("logger", MemoryTaskLogger())
    return CodexDriver().execute(
        env, "Add a README", logger, credentials=Credentials.from_mapping(creds), **kwargs
    )


def test_openrouter_key_routes_through_openrouter(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    result = _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY})
    assert result.success is True

    config = tomllib.loads(env.files["/root/.codex/config.toml"])
    assert config["model"] == "openai/gpt-4o"
    assert config["model_provider"] == "openrouter"
    provider = config["model_providers"]["openrouter"]
    assert provider["base_url"] == "https://openrouter.ai/api/v1"
    assert provider["env_key"] == "OPENROUTER_API_KEY"
    assert provider["wire_api"] == "chat"
    assert OPENROUTER_KEY not in env.files["/root/.codex/config.toml"]


def test_gateway_key_with_openai_prefix_routes_to_openai(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    result = _run(env, {"OPENROUTER_API_KEY": OPENAI_KEY})
    assert result.success is True

    config = tomllib.loads(env.files["/root/.codex/config.toml"])
    assert config["model_provider"] == "openai"
    assert config["model_providers"]["openai"]["wire_api"] == "responses"
    assert config["model_providers"]["openai"]["env_key"] == "OPENROUTER_API_KEY"


def test_gateway_key_preferred_over_openai_key(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    logger = MemoryTaskLogger()
    result = _run(
        env, {"OPENROUTER_API_KEY": OPENROUTER_KEY, "OPENAI_API_KEY": OPENAI_KEY}, logger=logger
    )
    assert result.success is True
    assert "Using OPENROUTER_API_KEY via OpenRouter" in logger.texts("info")
    (call,) = env.agent_calls()
    assert call.env["OPENROUTER_API_KEY"] == OPENROUTER_KEY
    assert "OPENAI_API_KEY" not in call.env


def test_openai_key_alone_is_accepted(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    result = _run(env, {"OPENAI_API_KEY": OPENAI_KEY})
    assert result.success is True
    config = tomllib.loads(env.files["/root/.codex/config.toml"])
    assert config["model_providers"]["openai"]["env_key"] == "OPENAI_API_KEY"


def test_invalid_key_format_never_echoes_the_value(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    bad = "pk-live-" + "9" * 30
    result = _run(env, {"OPENROUTER_API_KEY": bad})

    assert result.success is False
    assert "Invalid API key format for OPENROUTER_API_KEY" in (result.error or "")
    assert bad not in (result.error or "")
    assert bad[:12] not in (result.error or "")
    assert env.install_calls() == []


def test_missing_credentials_message(fake_env_cls: Any) -> None:
    result = _run(fake_env_cls(agent_binary="codex"), {})
    assert result.error == "OPENROUTER_API_KEY or OPENAI_API_KEY is required for Codex CLI."


def test_config_write_failure_is_fatal(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex", write_ok=False)
    result = _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY})

    assert result.success is False
    assert "Failed to write Codex CLI configuration file" in (result.error or "")
    assert env.agent_calls() == []


def test_connectors_are_rendered_with_rmcp_flag(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    connectors = [
        Connector(
            name="Files", type="local", command="npx -y @mcp/files /srv", env='{"ROOT":"/srv"}'
        ),
        Connector(
            name="Tracker",
            type="remote",
            base_url="https://mcp.example.com",
            oauth_client_secret="tracker-secret-value",
        ),
    ]
    result = _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY}, connectors=connectors)
    assert result.success is True

    config = tomllib.loads(env.files["/root/.codex/config.toml"])
    assert config["experimental_use_rmcp_client"] is True
    assert config["mcp_servers"]["files"]["command"] == "npx"
    assert config["mcp_servers"]["files"]["args"] == ["-y", "@mcp/files", "/srv"]
    assert config["mcp_servers"]["files"]["env"] == {"ROOT": "/srv"}
    assert config["mcp_servers"]["tracker"]["url"] == "https://mcp.example.com"
    headers = config["mcp_servers"]["tracker"]["http_headers"]
    assert headers["Authorization"] == "Bearer tracker-secret-value"


def test_fresh_run_command_shape(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY})
    (call,) = env.agent_calls()
    assert call.argv == [
        "codex",
        "exec",
        "--dangerously-bypass-approvals-and-sandbox",
        "Add a README",
    ]


def test_resume_with_session_id_targets_that_session(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY}, is_resumed=True, session_id="abc")
    (call,) = env.agent_calls()
    assert call.argv[-3:] == ["resume", "abc", "Add a README"]


def test_resume_without_session_id_uses_last(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY}, is_resumed=True)
    (call,) = env.agent_calls()
    assert call.argv[-3:] == ["resume", "--last", "Add a README"]


def test_session_id_ignored_when_not_resuming(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY}, is_resumed=False, session_id="abc")
    (call,) = env.agent_calls()
    assert "resume" not in call.argv
    assert "abc" not in call.argv


def test_selected_model_lands_in_config(fake_env_cls: Any) -> None:
    env = fake_env_cls(agent_binary="codex")
    _run(env, {"OPENROUTER_API_KEY": OPENROUTER_KEY}, selected_model="anthropic/claude-sonnet-4")
    config = tomllib.loads(env.files["/root/.codex/config.toml"])
    assert config["model"] == "anthropic/claude-sonnet-4"
