from __future__ import annotations

from collections.abc import Sequence

from agent_drivers.redact import SecretRedactor
from agent_drivers.types import AgentExecutionResult, LogEntry

NO_RESPONSE_PLACEHOLDER = "No detailed response available"


def summarize_output(display_name: str, *, changes_detected: bool, success: bool = True) -> str:
    suffix = "(Changes detected)" if changes_detected else "(No changes made)"
    verb = "executed successfully" if success else "failed"
    return f"{display_name} {verb} {suffix}"


def success_result(
    *,
    cli_name: str,
    display_name: str,
    changes_detected: bool,
    agent_response: str | None,
    session_id: str | None = None,
    logs: Sequence[LogEntry] = (),
    redactor: SecretRedactor | None = None,
) -> AgentExecutionResult:
    response = agent_response if agent_response and agent_response.strip() else None
    if response is not None and redactor is not None:
        response = redactor.redact(response)
    return AgentExecutionResult(
        success=True,
        cli_name=cli_name,
        changes_detected=changes_detected,
        output=summarize_output(display_name, changes_detected=changes_detected),
        agent_response=response or NO_RESPONSE_PLACEHOLDER,
        session_id=session_id,
        logs=tuple(logs),
    )


def failure_result(
    *,
    cli_name: str,
    error: str,
    display_name: str | None = None,
    changes_detected: bool = False,
    agent_response: str | None = None,
    session_id: str | None = None,
    logs: Sequence[LogEntry] = (),
    redactor: SecretRedactor | None = None,
) -> AgentExecutionResult:
    """
    A failed result always carries a non-empty, redacted `error`, and an `output` summary
    that still says whether the workspace changed.
    """

    message = error.strip() if error and error.strip() else f"{cli_name} failed"
    response = agent_response if agent_response and agent_response.strip() else None
    if redactor is not None:
        message = redactor.redact(message)
        if response is not None:
            response = redactor.redact(response)
    return AgentExecutionResult(
        success=False,
        cli_name=cli_name,
        changes_detected=changes_detected,
        output=summarize_output(
            display_name or cli_name, changes_detected=changes_detected, success=False
        ),
        agent_response=response,
        error=message,
        session_id=session_id,
        logs=tuple(logs),
    )
