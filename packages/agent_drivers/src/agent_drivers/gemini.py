from __future__ import annotations

from sandbox_runner import CommandResult

from agent_drivers.base import AgentDriver, Attempt, AuthPlan, ConfigArtifact, DriverRun
from agent_drivers.credentials import Credentials
from agent_drivers.errors import MissingCredentialError
from agent_drivers.mcp import dump_json, render_gemini_settings
from agent_drivers.task_logger import TaskLogger


def _is_tool_registry_error(stderr: str) -> bool:
    return "Tool" in stderr and "not found in registry" in stderr


class GeminiDriver(AgentDriver):
    """
    Google Gemini CLI.

    Sandboxes sometimes lack tools the CLI expects in its registry; when that happens the run
    is retried with progressively fewer flags.
    """

    agent_id = "gemini"
    display_name = "Gemini CLI"
    binary = "gemini"
    install_command = ("npm", "install", "-g", "@google/gemini-cli")
    streams = True

    def resolve_auth(self, credentials: Credentials, log: TaskLogger) -> AuthPlan:
        key = credentials.get("GEMINI_API_KEY")
        if key is not None:
            log.info(f"Gemini API key detected (prefix: {key[:4]}..., length: {len(key)})")
            if not key.startswith("AIza"):
                log.info(
                    "WARNING: Gemini API key does not start with 'AIza' - may be invalid format"
                )
            return AuthPlan(
                env={"GEMINI_API_KEY": key},
                description="Using GEMINI_API_KEY (Gemini API)",
                facts={"auth_type": "gemini-api-key"},
            )

        google_key = credentials.get("GOOGLE_API_KEY")
        if google_key is not None and credentials.has("GOOGLE_GENAI_USE_VERTEXAI"):
            return AuthPlan(
                env={"GOOGLE_API_KEY": google_key, "GOOGLE_GENAI_USE_VERTEXAI": "true"},
                description="Using Vertex AI auth",
                facts={"auth_type": "vertex-ai"},
            )

        if credentials.has("GOOGLE_CLOUD_PROJECT"):
            raise MissingCredentialError(
                "GEMINI_API_KEY is required for Gemini CLI.\n"
                "GOOGLE_CLOUD_PROJECT alone needs an interactive OAuth login, "
                "which cannot run in a sandbox."
            )
        raise MissingCredentialError(
            "GEMINI_API_KEY is required for Gemini CLI.\n"
            "Tip: GOOGLE_API_KEY with GOOGLE_GENAI_USE_VERTEXAI=true is also accepted."
        )

    def build_config(self, run: DriverRun, model: str | None) -> ConfigArtifact:
        assert run.auth is not None
        settings = render_gemini_settings(run.mcp, auth_type=run.auth.facts["auth_type"])
        return ConfigArtifact(relative_path=".gemini/settings.json", content=dump_json(settings))

    def build_attempts(self, run: DriverRun, model: str | None) -> list[Attempt]:
        inv = run.invocation
        if inv.is_resumed:
            run.log.info("Gemini CLI does not support session resumption; starting a fresh session")

        base = [run.executable]
        if model:
            base += ["-m", model]
            run.log.info("Using selected model")
        prompt = ["-p", inv.instruction]
        run.log.info("Executing Gemini CLI in headless mode")
        return [
            Attempt(argv=tuple(base + ["--yolo", "-o", "stream-json"] + prompt)),
            Attempt(
                argv=tuple(base + ["--approval-mode", "auto_edit"] + prompt),
                announce="Retrying with auto_edit approval mode...",
            ),
            Attempt(argv=tuple(base + prompt), announce="Retrying with minimal flags..."),
        ]

    def is_recoverable(self, result: CommandResult) -> bool:
        return not result.success and _is_tool_registry_error(result.stderr)

    def describe_failure(self, result: CommandResult, *, stdout: str, stderr: str) -> str:
        if "authentication" in stderr or "login" in stderr:
            return (
                "Gemini CLI authentication failed. Please set GEMINI_API_KEY, or GOOGLE_API_KEY "
                f"with GOOGLE_GENAI_USE_VERTEXAI=true. Error: {stderr.strip()}"
            )
        if _is_tool_registry_error(stderr):
            return (
                "Gemini CLI tool registry error - this may be due to sandbox environment "
                "limitations. Consider using a different agent for file modifications. "
                f"Error: {stderr.strip()}"
            )
        return super().describe_failure(result, stdout=stdout, stderr=stderr)
