from __future__ import annotations

from agent_drivers.base import AgentDriver, Attempt, AuthPlan, ConfigArtifact, DriverRun
from agent_drivers.credentials import Credentials
from agent_drivers.errors import MissingCredentialError
from agent_drivers.mcp import dump_json, render_claude_mcp_config
from agent_drivers.task_logger import TaskLogger

OPENROUTER_ANTHROPIC_BASE_URL = "https://openrouter.ai/api"


class ClaudeDriver(AgentDriver):
    agent_id = "claude"
    display_name = "Claude CLI"
    binary = "claude"
    install_command = ("npm", "install", "-g", "@anthropic-ai/claude-code")
    streams = True

    def resolve_auth(self, credentials: Credentials, log: TaskLogger) -> AuthPlan:
        native = credentials.get("ANTHROPIC_API_KEY")
        if native is not None:
            if not native.startswith("sk-ant-"):
                log.info(
                    "WARNING: ANTHROPIC_API_KEY does not start with 'sk-ant-' - may be invalid"
                )
            return AuthPlan(
                env={"ANTHROPIC_API_KEY": native},
                description="Using ANTHROPIC_API_KEY (native Anthropic API)",
            )

        gateway = credentials.get("OPENROUTER_API_KEY")
        if gateway is not None:
            return AuthPlan(
                env={
                    "ANTHROPIC_BASE_URL": OPENROUTER_ANTHROPIC_BASE_URL,
                    "ANTHROPIC_AUTH_TOKEN": gateway,
                    "ANTHROPIC_API_KEY": "",
                },
                description="Using OPENROUTER_API_KEY via the Anthropic-compatible gateway",
            )
        raise MissingCredentialError(
            "ANTHROPIC_API_KEY or OPENROUTER_API_KEY is required for Claude CLI."
        )

    def build_config(self, run: DriverRun, model: str | None) -> ConfigArtifact | None:
        if not run.mcp.servers:
            return None
        return ConfigArtifact(
            relative_path=".claude/mcp.json", content=dump_json(render_claude_mcp_config(run.mcp))
        )

    def build_attempts(self, run: DriverRun, model: str | None) -> list[Attempt]:
        inv = run.invocation
        argv = [
            run.executable,
            "-p",
            "--dangerously-skip-permissions",
            "--output-format",
            "stream-json",
            "--verbose",
        ]
        if model:
            argv += ["--model", model]
        if run.config_path:
            argv += ["--mcp-config", run.config_path]
        if inv.is_resumed:
            if inv.session_id:
                run.log.info("Resuming specific Claude session")
                argv += ["--resume", inv.session_id]
            else:
                run.log.info("Continuing most recent Claude session")
                argv.append("--continue")
        argv.append(inv.instruction)
        return [Attempt(argv=tuple(argv))]
