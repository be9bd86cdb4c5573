from __future__ import annotations

import posixpath
import re
import shlex
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from sandbox_runner import CommandResult, ExecutionEnvironment

from agent_drivers.capture import CaptureSink
from agent_drivers.config import AgentSettings
from agent_drivers.credentials import Credentials
from agent_drivers.errors import (
    CancelledError,
    ConfigurationWriteError,
    DriverError,
    ExecutionError,
    InstallationError,
    VerificationError,
)
from agent_drivers.mcp import McpConfig, translate_connectors
from agent_drivers.redact import SecretRedactor
from agent_drivers.results import failure_result, success_result
from agent_drivers.task_logger import RedactingTaskLogger, TaskLogger
from agent_drivers.types import AgentExecutionResult, Connector, DriverInvocation

MAX_EXECUTION_ATTEMPTS = 3
CANCELLED_MESSAGE = "Task was cancelled"

NON_INTERACTIVE_ENV: dict[str, str] = {
    "CI": "true",
    "NO_UPDATE_NOTIFIER": "true",
    "npm_config_yes": "true",
}

_JSON_SESSION_RE = re.compile(r'"session_id"\s*:\s*"([^"]+)"')
_TEXT_SESSION_RE = re.compile(
    r"(?:session[_\s-]?id|Session)[:\s]+([a-f0-9-]{8,})", re.IGNORECASE
)


def extract_session_id(text: str) -> str | None:
    """Best-effort continuation id from agent output; None when nothing recognisable."""

    if not text:
        return None
    match = _JSON_SESSION_RE.search(text)
    if match:
        return match.group(1)
    match = _TEXT_SESSION_RE.search(text)
    if match and any(ch.isalnum() for ch in match.group(1)):
        return match.group(1)
    return None


@dataclass(frozen=True)
class AuthPlan:
    """Resolved credentials: the env vars handed to the agent plus driver-specific facts."""

    env: Mapping[str, str]
    description: str
    facts: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfigArtifact:
    relative_path: str
    content: str
    fatal: bool = False


@dataclass(frozen=True)
class Attempt:
    argv: tuple[str, ...]
    announce: str | None = None


@dataclass
class DriverRun:
    invocation: DriverInvocation
    log: RedactingTaskLogger
    executable: str
    auth: AuthPlan | None = None
    mcp: McpConfig = field(default_factory=McpConfig)
    config_path: str | None = None
    attempts: int = 0

    @property
    def env(self) -> ExecutionEnvironment:
        return self.invocation.env

    @property
    def credentials(self) -> Credentials:
        return self.invocation.credentials

    def home_path(self, relative: str) -> str:
        return posixpath.join(self.env.home_dir, relative)


@dataclass(frozen=True)
class _Outcome:
    result: CommandResult
    stdout: str
    stderr: str


class AgentDriver:
    """
    Shared pipeline for one coding-agent CLI.

    `execute` runs: authenticate, install (if absent), verify, configure, execute (with an
    optional fallback ladder), interpret. Subclasses override the strategy hooks only; run
    state lives in a `DriverRun`, so one instance can serve concurrent invocations.
    """

    agent_id: str = ""
    display_name: str = ""
    binary: str = ""
    install_command: tuple[str, ...] = ()
    verify_args: tuple[str, ...] = ("--version",)
    default_model: str | None = None
    streams: bool = False
    config_write_fatal: bool = False

    def __init__(self, settings: AgentSettings | None = None) -> None:
        self.settings = settings or AgentSettings()
        if self.settings.binary:
            self.binary = self.settings.binary
        if self.settings.install_command:
            self.install_command = tuple(self.settings.install_command)
        if self.settings.default_model:
            self.default_model = self.settings.default_model

    # -- strategy hooks --------------------------------------------------------------------

    def resolve_auth(self, credentials: Credentials, log: TaskLogger) -> AuthPlan:
        raise NotImplementedError

    def build_config(self, run: DriverRun, model: str | None) -> ConfigArtifact | None:
        return None

    def after_configure(self, run: DriverRun) -> None:
        return

    def build_attempts(self, run: DriverRun, model: str | None) -> list[Attempt]:
        raise NotImplementedError

    def is_recoverable(self, result: CommandResult) -> bool:
        return False

    def describe_failure(self, result: CommandResult, *, stdout: str, stderr: str) -> str:
        detail = stderr.strip() or "No error message"
        return f"{self.display_name} failed (exit code {result.exit_code}): {detail}"

    def fallback_executables(self, run: DriverRun) -> list[str]:
        return []

    def select_model(self, run: DriverRun) -> str | None:
        return run.invocation.selected_model or self.default_model

    # -- public contract -------------------------------------------------------------------

    def execute(
        self,
        env: ExecutionEnvironment,
        instruction: str,
        logger: TaskLogger | None,
        selected_model: str | None = None,
        connectors: Sequence[Connector] | None = None,
        is_resumed: bool = False,
        session_id: str | None = None,
        *,
        credentials: Credentials | None = None,
        cancel_check: Callable[[], bool] | None = None,
    ) -> AgentExecutionResult:
        try:
            invocation = DriverInvocation(
                env=env,
                instruction=instruction,
                logger=logger,
                credentials=credentials if credentials is not None else Credentials(),
                selected_model=selected_model,
                connectors=tuple(
                    Connector.from_mapping(c) if isinstance(c, Mapping) else c
                    for c in connectors or ()
                ),
                is_resumed=is_resumed,
                session_id=session_id,
                cancel_check=cancel_check,
            )
        except Exception as e:
            return failure_result(
                cli_name=self.agent_id,
                error=f"Invalid invocation: {e}",
                display_name=self.display_name,
            )
        return self.run(invocation)

    def preview_config(self, invocation: DriverInvocation) -> ConfigArtifact | None:
        """
        Build the configuration artifact `execute` would write, without running commands.

        Raises the same `DriverError`s as the auth phase, and `ValueError` for connectors that
        translate to an invalid server set.
        """

        redactor = SecretRedactor.for_invocation(invocation.credentials, invocation.connectors)
        log = RedactingTaskLogger(invocation.logger, redactor)
        run = DriverRun(invocation=invocation, log=log, executable=self.binary)
        run.auth = self.resolve_auth(run.credentials, log)
        model = self.select_model(run)
        run.mcp = translate_connectors(invocation.connectors, warn=log.info)
        return self.build_config(run, model)

    def run(self, invocation: DriverInvocation) -> AgentExecutionResult:
        try:
            redactor = SecretRedactor.for_invocation(
                invocation.credentials, invocation.connectors
            )
        except Exception as e:
            return failure_result(
                cli_name=self.agent_id,
                error=f"Invalid invocation: {e}",
                display_name=self.display_name,
            )
        log = RedactingTaskLogger(invocation.logger, redactor)
        run = DriverRun(invocation=invocation, log=log, executable=self.binary)

        try:
            self._check_cancelled(run)
            run.auth = self.resolve_auth(run.credentials, log)
            log.info(run.auth.description)
            self._check_cancelled(run)
            self._ensure_installed(run)
            self._verify(run)
            self._check_cancelled(run)
            model = self.select_model(run)
            self._configure(run, model)
            self._check_cancelled(run)
            outcome = self._execute_with_fallback(run, model)
        except DriverError as e:
            log.error(str(e))
            return failure_result(
                cli_name=self.agent_id,
                error=str(e),
                display_name=self.display_name,
                logs=log.entries,
                redactor=redactor,
            )
        except Exception as e:
            message = str(e) or f"Failed to execute {self.display_name} in sandbox"
            log.error(message)
            return failure_result(
                cli_name=self.agent_id,
                error=message,
                display_name=self.display_name,
                logs=log.entries,
                redactor=redactor,
            )

        return self._interpret(run, outcome)

    # -- pipeline steps --------------------------------------------------------------------

    def _check_cancelled(self, run: DriverRun) -> None:
        check = run.invocation.cancel_check
        if check is None:
            return
        if check():
            raise CancelledError(CANCELLED_MESSAGE)

    def _command_env(self, run: DriverRun, *, with_auth: bool) -> dict[str, str]:
        env = dict(NON_INTERACTIVE_ENV)
        env.update(self.settings.env)
        if with_auth and run.auth is not None:
            env.update(run.auth.env)
        return env

    def run_and_log(
        self,
        run: DriverRun,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        input_text: str | None = None,
        on_stdout: CaptureSink | None = None,
        on_stderr: CaptureSink | None = None,
        quiet: bool = False,
    ) -> CommandResult:
        if not quiet:
            run.log.command(shlex.join(argv))
        return run.env.run(
            list(argv),
            env=env,
            cwd=cwd,
            input_text=input_text,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
        )

    def _ensure_installed(self, run: DriverRun) -> None:
        probe = self.run_and_log(run, ["which", run.executable], quiet=True)
        if probe.success and self.binary in probe.stdout:
            run.log.info(f"{self.display_name} already installed, skipping installation")
            return
        # Some installers leave the binary off PATH; look where `_verify` would.
        for candidate in self.fallback_executables(run):
            if candidate == run.executable:
                continue
            if self.run_and_log(run, [candidate, *self.verify_args], quiet=True).success:
                run.executable = candidate
                run.log.info(
                    f"{self.display_name} already installed at {candidate}, "
                    "skipping installation"
                )
                return

        run.log.info(f"Installing {self.display_name}...")
        result = self.run_and_log(
            run, self.install_command, env=self._command_env(run, with_auth=False)
        )
        if not result.success:
            detail = (
                result.stderr.strip() or result.stdout.strip() or f"exit code {result.exit_code}"
            )
            raise InstallationError(
                f"Failed to install {self.display_name}: {detail}",
                details={"exit_code": result.exit_code},
            )
        run.log.info(f"{self.display_name} installed successfully")

    def _verify(self, run: DriverRun) -> None:
        tried = [run.executable]
        if self.run_and_log(run, [run.executable, *self.verify_args]).success:
            run.log.success(f"{self.display_name} verified successfully")
            return

        for candidate in self.fallback_executables(run):
            if candidate in tried:
                continue
            tried.append(candidate)
            if self.run_and_log(run, [candidate, *self.verify_args]).success:
                run.executable = candidate
                run.log.success(f"{self.display_name} verified at {candidate}")
                return
        raise VerificationError(
            f"{self.display_name} not found after installation. Tried: {', '.join(tried)}",
            details={"tried": tried},
        )

    def _configure(self, run: DriverRun, model: str | None) -> None:
        connectors = run.invocation.connectors
        if connectors:
            run.log.info("Configuring MCP servers")
        run.mcp = translate_connectors(connectors, warn=run.log.info, info=run.log.info)

        artifact = self.build_config(run, model)
        if artifact is not None:
            self._write_config(run, artifact)
        self.after_configure(run)

    def _write_config(self, run: DriverRun, artifact: ConfigArtifact) -> None:
        path = run.home_path(artifact.relative_path)
        directory = posixpath.dirname(path)
        run.log.info(f"Creating {self.display_name} configuration file...")
        # Content goes over stdin so secrets never appear in argv.
        result = self.run_and_log(
            run,
            ["sh", "-c", 'mkdir -p "$1" && cat > "$2"', "sh", directory, path],
            input_text=artifact.content,
        )
        if not result.success:
            message = f"Failed to write {self.display_name} configuration file: {path}"
            if artifact.fatal or self.config_write_fatal:
                raise ConfigurationWriteError(
                    message + (f"\n{result.stderr.strip()}" if result.stderr.strip() else ""),
                    details={"path": path},
                )
            run.log.info(f"Warning: {message}")
            return

        run.config_path = path
        check = self.run_and_log(run, ["test", "-f", path])
        if check.success:
            run.log.info("Configuration file verified")

    def _execute_with_fallback(self, run: DriverRun, model: str | None) -> _Outcome:
        attempts = self.build_attempts(run, model)[:MAX_EXECUTION_ATTEMPTS]
        if not attempts:
            raise ExecutionError(f"No execution command for {self.display_name}")
        env = self._command_env(run, with_auth=True)
        for idx, attempt in enumerate(attempts):
            if idx > 0 and attempt.announce:
                run.log.info(attempt.announce)
            outcome = self._attempt(run, attempt, env)
            run.attempts += 1
            if outcome.result.success or not self.is_recoverable(outcome.result):
                break
        else:
            if len(attempts) > 1:
                run.log.info(f"Giving up after {run.attempts} attempts")
        return outcome

    def _attempt(self, run: DriverRun, attempt: Attempt, env: Mapping[str, str]) -> _Outcome:
        log = run.log
        if self.streams:
            out_sink = CaptureSink(log.info)
            err_sink = CaptureSink(lambda text: log.error(f"[stderr] {text}"))
        else:
            out_sink = CaptureSink()
            err_sink = CaptureSink()

        try:
            result = self.run_and_log(
                run,
                attempt.argv,
                env=env,
                cwd=run.env.project_dir,
                on_stdout=out_sink,
                on_stderr=err_sink,
            )
        except Exception as e:
            raise ExecutionError(
                f"Failed to execute {self.display_name} in sandbox: {e}",
                details={"argv0": attempt.argv[0] if attempt.argv else ""},
            ) from e
        stdout = out_sink.text or result.stdout
        stderr = err_sink.text or result.stderr

        if not self.streams:
            if stdout.strip():
                log.info(stdout.strip())
            if stderr.strip():
                log.error(stderr.strip())
        return _Outcome(result=result, stdout=stdout, stderr=stderr)

    def _detect_changes(self, run: DriverRun) -> bool:
        try:
            status = self.run_and_log(
                run, ["git", "status", "--porcelain"], cwd=run.env.project_dir
            )
        except Exception as e:
            run.log.info(f"Could not check for changes: {e}")
            return False
        return status.success and bool(status.stdout.strip())

    def _interpret(self, run: DriverRun, outcome: _Outcome) -> AgentExecutionResult:
        log = run.log
        try:
            log.info(f"{self.display_name} execution completed")
            changes = self._detect_changes(run)
            session_id = extract_session_id(outcome.stdout)
            if session_id is None:
                session_id = extract_session_id(outcome.stderr)
            if session_id is None:
                log.info("No session ID found in output")
            else:
                log.info("Session ID captured for resumption")

            if outcome.result.success:
                summary = "Changes detected" if changes else "No changes made"
                log.success(f"{self.display_name} finished ({summary})")
                return success_result(
                    cli_name=self.agent_id,
                    display_name=self.display_name,
                    changes_detected=changes,
                    agent_response=outcome.stdout,
                    session_id=session_id,
                    logs=log.entries,
                    redactor=log.redactor,
                )

            message = self.describe_failure(
                outcome.result, stdout=outcome.stdout, stderr=outcome.stderr
            )
            log.error(message)
            return failure_result(
                cli_name=self.agent_id,
                error=message,
                display_name=self.display_name,
                changes_detected=changes,
                agent_response=outcome.stdout,
                session_id=session_id,
                logs=log.entries,
                redactor=log.redactor,
            )
        except Exception as e:
            message = str(e) or f"Failed to execute {self.display_name} in sandbox"
            return failure_result(
                cli_name=self.agent_id,
                error=message,
                display_name=self.display_name,
                logs=log.entries,
                redactor=log.redactor,
            )
