from __future__ import annotations

from agent_drivers.base import AgentDriver, Attempt, AuthPlan, ConfigArtifact, DriverRun
from agent_drivers.credentials import Credentials
from agent_drivers.errors import MissingCredentialError
from agent_drivers.mcp import dump_json, render_cursor_mcp_config
from agent_drivers.task_logger import TaskLogger


class CursorDriver(AgentDriver):
    agent_id = "cursor"
    display_name = "Cursor CLI"
    binary = "cursor-agent"
    install_command = ("sh", "-c", "curl https://cursor.com/install -fsS | bash")
    streams = True

    def resolve_auth(self, credentials: Credentials, log: TaskLogger) -> AuthPlan:
        key = credentials.get("CURSOR_API_KEY")
        if key is None:
            raise MissingCredentialError("CURSOR_API_KEY is required for Cursor CLI.")
        return AuthPlan(env={"CURSOR_API_KEY": key}, description="Using CURSOR_API_KEY")

    def fallback_executables(self, run: DriverRun) -> list[str]:
        # The installer drops the binary here without touching PATH.
        return [run.home_path(f".local/bin/{self.binary}")]

    def build_config(self, run: DriverRun, model: str | None) -> ConfigArtifact | None:
        if not run.mcp.servers:
            return None
        return ConfigArtifact(
            relative_path=".cursor/mcp.json", content=dump_json(render_cursor_mcp_config(run.mcp))
        )

    def build_attempts(self, run: DriverRun, model: str | None) -> list[Attempt]:
        inv = run.invocation
        argv = [run.executable]
        if inv.is_resumed:
            if inv.session_id:
                run.log.info("Resuming specific Cursor chat")
                argv += ["--resume", inv.session_id]
            else:
                # Bare `--resume` must be followed by another flag, not the prompt.
                run.log.info("Resuming most recent Cursor chat")
                argv.append("--resume")
        argv += ["-p", "--force", "--output-format", "stream-json"]
        if model:
            argv += ["--model", model]
        argv.append(inv.instruction)
        return [Attempt(argv=tuple(argv))]
