from __future__ import annotations

import posixpath

from sandbox_runner import CommandResult

from agent_drivers.base import AgentDriver, Attempt, AuthPlan, ConfigArtifact, DriverRun
from agent_drivers.credentials import Credentials
from agent_drivers.errors import MissingCredentialError
from agent_drivers.mcp import dump_json, render_opencode_config
from agent_drivers.models import (
    OPENCODE_DEFAULT_MODEL,
    map_opencode_model,
    normalize_openrouter_base_url,
)
from agent_drivers.task_logger import TaskLogger

# (provider, credential) pairs registered with `opencode auth add`.
_AUTH_PROVIDERS: tuple[tuple[str, str], ...] = (
    ("openai", "OPENAI_API_KEY"),
    ("anthropic", "ANTHROPIC_API_KEY"),
)


class OpenCodeDriver(AgentDriver):
    agent_id = "opencode"
    display_name = "OpenCode"
    binary = "opencode"
    install_command = ("npm", "install", "-g", "opencode-ai")
    default_model = OPENCODE_DEFAULT_MODEL

    def resolve_auth(self, credentials: Credentials, log: TaskLogger) -> AuthPlan:
        gateway = credentials.get("OPENROUTER_API_KEY")
        openai_key = credentials.get("OPENAI_API_KEY")
        anthropic_key = credentials.get("ANTHROPIC_API_KEY")
        if not (gateway or openai_key or anthropic_key):
            raise MissingCredentialError(
                "OPENROUTER_API_KEY or OPENAI_API_KEY or ANTHROPIC_API_KEY is required for "
                "OpenCode."
            )

        env: dict[str, str] = {}
        if gateway:
            env["OPENAI_API_KEY"] = gateway
            env["OPENROUTER_API_KEY"] = gateway
            description = "Using OPENROUTER_API_KEY (OpenRouter)"
        elif openai_key:
            env["OPENAI_API_KEY"] = openai_key
            description = "Using OPENAI_API_KEY (OpenAI)"
        else:
            description = "Using ANTHROPIC_API_KEY (Anthropic)"

        base_url = credentials.get("OPENAI_API_BASE") or credentials.get("OPENAI_BASE_URL")
        if base_url:
            env["OPENAI_BASE_URL"] = normalize_openrouter_base_url(base_url)
        if anthropic_key:
            env["ANTHROPIC_API_KEY"] = anthropic_key

        openrouter = bool(gateway) or "openrouter.ai" in (base_url or "")
        return AuthPlan(
            env=env,
            description=description,
            facts={"openrouter": "true" if openrouter else "false"},
        )

    def select_model(self, run: DriverRun) -> str | None:
        requested = run.invocation.selected_model or self.default_model or OPENCODE_DEFAULT_MODEL
        assert run.auth is not None
        return map_opencode_model(requested, openrouter=run.auth.facts["openrouter"] == "true")

    def fallback_executables(self, run: DriverRun) -> list[str]:
        prefix = self.run_and_log(run, ["npm", "prefix", "-g"])
        path = prefix.stdout.strip()
        if not prefix.success or not path:
            run.log.info("Could not determine npm global prefix")
            return []
        return [posixpath.join(path, "bin", self.binary)]

    def build_config(self, run: DriverRun, model: str | None) -> ConfigArtifact:
        document = render_opencode_config(run.mcp, model=model)
        return ConfigArtifact(relative_path=".opencode/config.json", content=dump_json(document))

    def after_configure(self, run: DriverRun) -> None:
        # Registering keys is optional: the environment already carries them.
        for provider, name in _AUTH_PROVIDERS:
            key = run.credentials.get(name)
            if not key:
                continue
            run.log.info(f"Configuring {provider} provider...")
            result = self.run_and_log(
                run, [run.executable, "auth", "add", provider], input_text=key + "\n"
            )
            if not result.success:
                run.log.info(f"Failed to configure {provider} provider, but continuing...")

    def build_attempts(self, run: DriverRun, model: str | None) -> list[Attempt]:
        inv = run.invocation
        argv = [run.executable, "run"]
        if model:
            argv += ["--model", model]
        if inv.is_resumed:
            if inv.session_id:
                run.log.info("Resuming specific OpenCode session")
                argv += ["--session", inv.session_id]
            else:
                run.log.info("Continuing last OpenCode session")
                argv.append("--continue")
        argv.append(inv.instruction)
        run.log.info("Executing OpenCode run command in non-interactive mode...")
        return [Attempt(argv=tuple(argv))]

    def describe_failure(self, result: CommandResult, *, stdout: str, stderr: str) -> str:
        detail = stderr.strip() or stdout.strip() or "No error message"
        return f"{self.display_name} failed (exit code {result.exit_code}): {detail}"
