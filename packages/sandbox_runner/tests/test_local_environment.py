from __future__ import annotations

import sys
from pathlib import Path

import pytest

from sandbox_runner import CommandResult, ExecutionEnvironment, LocalEnvironment, run_process

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX sh")

_BASE_ENV = {"PATH": "/usr/bin:/bin"}


def test_run_streams_lines_and_returns_full_output(tmp_path: Path) -> None:
    out_lines: list[str] = []
    err_lines: list[str] = []
    env = LocalEnvironment(tmp_path, home_dir=tmp_path / "home", base_env=_BASE_ENV)

    result = env.run(
        ["sh", "-c", "echo one; echo two; echo oops >&2; exit 3"],
        on_stdout=out_lines.append,
        on_stderr=err_lines.append,
    )

    assert result.exit_code == 3
    assert result.success is False
    assert result.stdout == "one\ntwo\n"
    assert result.stderr == "oops\n"
    assert out_lines == ["one\n", "two\n"]
    assert err_lines == ["oops\n"]


def test_run_feeds_stdin_and_uses_project_dir(tmp_path: Path) -> None:
    env = LocalEnvironment(tmp_path, home_dir=tmp_path / "home", base_env=_BASE_ENV)
    result = env.run(["sh", "-c", 'cat > "$1" && pwd', "sh", "note.txt"], input_text="hello\n")

    assert result.success is True
    assert result.stdout.strip() == str(tmp_path.resolve())
    assert (tmp_path / "note.txt").read_text(encoding="utf-8") == "hello\n"


def test_run_exports_home_and_extra_env(tmp_path: Path) -> None:
    home = tmp_path / "scratch-home"
    env = LocalEnvironment(tmp_path, home_dir=home, base_env=_BASE_ENV)
    result = env.run(["sh", "-c", 'echo "$HOME|$CI"'], env={"CI": "true"})

    assert result.stdout.strip() == f"{home.resolve()}|true"
    assert home.is_dir()


def test_missing_executable_is_exit_127(tmp_path: Path) -> None:
    env = LocalEnvironment(tmp_path, home_dir=tmp_path / "home")
    result = env.run(["definitely-not-a-real-binary-xyz", "--version"])

    assert result.exit_code == 127
    assert "Failed to launch process" in result.stderr
    assert result.argv == ["definitely-not-a-real-binary-xyz", "--version"]


def test_failing_callback_does_not_stop_capture() -> None:
    def _boom(_: str) -> None:
        raise ValueError("observer broke")

    result = run_process(["sh", "-c", "echo a; echo b"], on_stdout=_boom)
    assert result.stdout == "a\nb\n"


def test_environment_is_a_context_manager(tmp_path: Path) -> None:
    closed: list[bool] = []

    class Tracking(LocalEnvironment):
        def close(self) -> None:
            closed.append(True)

    with Tracking(tmp_path) as env:
        assert isinstance(env, ExecutionEnvironment)
    assert closed == [True]


def test_command_result_success_flag() -> None:
    assert CommandResult(["true"], 0).success is True
    assert CommandResult(["false"], 1).success is False
