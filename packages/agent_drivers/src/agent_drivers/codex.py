from __future__ import annotations

from agent_drivers.base import AgentDriver, Attempt, AuthPlan, ConfigArtifact, DriverRun
from agent_drivers.credentials import Credentials
from agent_drivers.errors import InvalidCredentialFormatError, MissingCredentialError
from agent_drivers.mcp import openai_provider, openrouter_provider, render_codex_config_toml
from agent_drivers.task_logger import TaskLogger


class CodexDriver(AgentDriver):
    """
    OpenAI Codex CLI (`codex exec`).

    Provider routing lives in `~/.codex/config.toml`, so a failed config write ends the run.
    """

    agent_id = "codex"
    display_name = "Codex CLI"
    binary = "codex"
    install_command = ("npm", "install", "-g", "@openai/codex")
    default_model = "openai/gpt-4o"
    config_write_fatal = True

    def resolve_auth(self, credentials: Credentials, log: TaskLogger) -> AuthPlan:
        for name in ("OPENROUTER_API_KEY", "OPENAI_API_KEY"):
            key = credentials.get(name)
            if key is None:
                continue
            if key.startswith("sk-or-"):
                provider, label = "openrouter", "OpenRouter"
            elif key.startswith("sk-"):
                provider, label = "openai", "OpenAI API"
            else:
                raise InvalidCredentialFormatError(
                    f"Invalid API key format for {name}. "
                    'Expected to start with "sk-" (OpenAI) or "sk-or-" (OpenRouter).',
                    details={"credential": name},
                )
            return AuthPlan(
                env={name: key},
                description=f"Using {name} via {label}",
                facts={"provider": provider, "env_key": name},
            )
        raise MissingCredentialError(
            "OPENROUTER_API_KEY or OPENAI_API_KEY is required for Codex CLI."
        )

    def build_config(self, run: DriverRun, model: str | None) -> ConfigArtifact:
        assert run.auth is not None
        env_key = run.auth.facts["env_key"]
        if run.auth.facts["provider"] == "openrouter":
            provider = openrouter_provider(env_key)
        else:
            provider = openai_provider(env_key)
        content = render_codex_config_toml(
            run.mcp, model=model or "openai/gpt-4o", provider=provider
        )
        return ConfigArtifact(relative_path=".codex/config.toml", content=content, fatal=True)

    def build_attempts(self, run: DriverRun, model: str | None) -> list[Attempt]:
        inv = run.invocation
        argv = [run.executable, "exec", "--dangerously-bypass-approvals-and-sandbox"]
        if inv.is_resumed:
            if inv.session_id:
                run.log.info("Resuming specific Codex session")
                argv += ["resume", inv.session_id]
            else:
                run.log.info("Resuming previous Codex conversation")
                argv += ["resume", "--last"]
        argv.append(inv.instruction)
        run.log.info(f"Executing Codex with model {model} and bypassed sandbox restrictions")
        return [Attempt(argv=tuple(argv))]
