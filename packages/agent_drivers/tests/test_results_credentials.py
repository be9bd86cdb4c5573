from __future__ import annotations

import pytest
from agent_drivers import AgentExecutionResult, Credentials, SecretRedactor
from agent_drivers.results import failure_result, success_result
from agent_drivers.types import LogEntry


def test_success_result_summarizes_and_redacts() -> None:
    redactor = SecretRedactor(secrets=("hush",))
    result = success_result(
        cli_name="claude",
        display_name="Claude CLI",
        changes_detected=True,
        agent_response="said hush",
        session_id="s-1",
        logs=[LogEntry(kind="info", text="x")],
        redactor=redactor,
    )
    assert result.success is True
    assert result.output == "Claude CLI executed successfully (Changes detected)"
    assert result.agent_response == "said [REDACTED]"
    assert result.error is None
    assert result.session_id == "s-1"


def test_success_result_placeholder_for_blank_response() -> None:
    result = success_result(
        cli_name="codex", display_name="Codex CLI", changes_detected=False, agent_response="  \n"
    )
    assert result.agent_response == "No detailed response available"
    assert result.output == "Codex CLI executed successfully (No changes made)"


@pytest.mark.parametrize("error", ["", "   "])
def test_failure_result_never_has_empty_error(error: str) -> None:
    result = failure_result(cli_name="gemini", error=error)
    assert result.success is False
    assert result.error == "gemini failed"
    assert result.output == "gemini failed (No changes made)"


def test_failure_result_redacts_error() -> None:
    result = failure_result(
        cli_name="codex",
        error="bad key sk-or-v1-0123456789abcdef",
        changes_detected=True,
        redactor=SecretRedactor(),
    )
    assert result.error == "bad key [REDACTED]"
    assert result.changes_detected is True


def test_failure_result_summary_reports_changes() -> None:
    result = failure_result(
        cli_name="cursor", display_name="Cursor CLI", error="exit 1", changes_detected=True
    )
    assert result.output == "Cursor CLI failed (Changes detected)"


def test_result_to_dict_omits_unset_fields() -> None:
    result = AgentExecutionResult(
        success=True, cli_name="cursor", logs=(LogEntry(kind="info", text="hi"),)
    )
    assert result.to_dict() == {
        "success": True,
        "cli_name": "cursor",
        "changes_detected": False,
        "logs": [{"kind": "info", "text": "hi"}],
    }


def test_result_truncated_clips_long_fields() -> None:
    result = AgentExecutionResult(success=False, cli_name="x", error="e" * 50, output="short")
    clipped = result.truncated(limit=10)
    assert clipped.error == "eeeeeee..."
    assert clipped.output == "short"


def test_credentials_drop_unknown_and_blank_values() -> None:
    creds = Credentials.from_mapping(
        {"OPENAI_API_KEY": "  sk-abc  ", "GEMINI_API_KEY": "   ", "HOME": "/root"}
    )
    assert creds.get("OPENAI_API_KEY") == "sk-abc"
    assert creds.has("GEMINI_API_KEY") is False
    assert creds.get("HOME") is None
    assert creds.names() == ["OPENAI_API_KEY"]


def test_credentials_from_env_reads_given_mapping() -> None:
    creds = Credentials.from_env(
        {"CURSOR_API_KEY": "c", "GOOGLE_CLOUD_PROJECT": "proj", "PATH": "/bin"}
    )
    assert creds.names() == ["CURSOR_API_KEY", "GOOGLE_CLOUD_PROJECT"]
    assert creds.secret_values() == ["c"]


def test_credentials_are_immutable() -> None:
    creds = Credentials.from_mapping({"OPENAI_API_KEY": "k"})
    with pytest.raises(TypeError):
        creds.values["OPENAI_API_KEY"] = "other"  # type: ignore[index]
