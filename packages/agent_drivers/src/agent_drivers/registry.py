from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence

from sandbox_runner import ExecutionEnvironment

from agent_drivers.base import AgentDriver
from agent_drivers.claude import ClaudeDriver
from agent_drivers.codex import CodexDriver
from agent_drivers.config import AGENT_IDS, AgentSettings
from agent_drivers.credentials import Credentials
from agent_drivers.cursor import CursorDriver
from agent_drivers.gemini import GeminiDriver
from agent_drivers.opencode import OpenCodeDriver
from agent_drivers.redact import SecretRedactor
from agent_drivers.results import failure_result
from agent_drivers.task_logger import RedactingTaskLogger, TaskLogger
from agent_drivers.types import AgentExecutionResult, Connector

_DRIVERS: dict[str, type[AgentDriver]] = {
    "codex": CodexDriver,
    "claude": ClaudeDriver,
    "gemini": GeminiDriver,
    "opencode": OpenCodeDriver,
    "cursor": CursorDriver,
}
assert tuple(_DRIVERS) == AGENT_IDS


def available_agents() -> list[str]:
    return list(_DRIVERS)


def get_driver(agent_id: str, settings: AgentSettings | None = None) -> AgentDriver:
    try:
        driver_cls = _DRIVERS[agent_id]
    except KeyError:
        known = ", ".join(_DRIVERS)
        raise KeyError(f"Unknown agent {agent_id!r}. Known agents: {known}") from None
    return driver_cls(settings)


def run_agent(
    agent_id: str,
    env: ExecutionEnvironment,
    instruction: str,
    logger: TaskLogger | None,
    *,
    selected_model: str | None = None,
    connectors: Sequence[Connector] | None = None,
    is_resumed: bool = False,
    session_id: str | None = None,
    credentials: Credentials | None = None,
    settings: Mapping[str, AgentSettings] | None = None,
    cancel_check: Callable[[], bool] | None = None,
) -> AgentExecutionResult:
    """Select the driver for `agent_id` and run it; an unknown id is a failure result."""

    try:
        driver = get_driver(agent_id, (settings or {}).get(agent_id))
    except KeyError as e:
        message = str(e.args[0]) if e.args else str(e)
        log = RedactingTaskLogger(logger, SecretRedactor())
        log.error(message)
        return failure_result(cli_name=agent_id, error=message, logs=log.entries)
    return driver.execute(
        env,
        instruction,
        logger,
        selected_model=selected_model,
        connectors=connectors,
        is_resumed=is_resumed,
        session_id=session_id,
        credentials=credentials,
        cancel_check=cancel_check,
    )
