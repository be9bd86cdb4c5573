from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version

from agent_drivers.base import MAX_EXECUTION_ATTEMPTS, AgentDriver, extract_session_id
from agent_drivers.claude import ClaudeDriver
from agent_drivers.codex import CodexDriver
from agent_drivers.config import AgentSettings, load_agents_config, load_connectors
from agent_drivers.credentials import Credentials
from agent_drivers.cursor import CursorDriver
from agent_drivers.errors import ConfigError, DriverError
from agent_drivers.gemini import GeminiDriver
from agent_drivers.opencode import OpenCodeDriver
from agent_drivers.redact import SecretRedactor, redact_sensitive_info
from agent_drivers.registry import available_agents, get_driver, run_agent
from agent_drivers.task_logger import (
    JsonlTaskLogger,
    MemoryTaskLogger,
    RedactingTaskLogger,
    TaskLogger,
)
from agent_drivers.types import (
    AgentExecutionResult,
    Connector,
    DriverInvocation,
    LogEntry,
)


def _resolve_version() -> str:
    for distribution_name in ("sandbox-agents", "sandbox_agents"):
        try:
            return package_version(distribution_name)
        except PackageNotFoundError:
            continue
    return "0+unknown"


__version__ = _resolve_version()

__all__ = [
    "__version__",
    "AgentDriver",
    "AgentExecutionResult",
    "AgentSettings",
    "ClaudeDriver",
    "CodexDriver",
    "ConfigError",
    "Connector",
    "Credentials",
    "CursorDriver",
    "DriverError",
    "DriverInvocation",
    "GeminiDriver",
    "JsonlTaskLogger",
    "LogEntry",
    "MAX_EXECUTION_ATTEMPTS",
    "MemoryTaskLogger",
    "OpenCodeDriver",
    "RedactingTaskLogger",
    "SecretRedactor",
    "TaskLogger",
    "available_agents",
    "extract_session_id",
    "get_driver",
    "load_agents_config",
    "load_connectors",
    "redact_sensitive_info",
    "run_agent",
]
