from __future__ import annotations

import posixpath
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import pytest
from sandbox_runner import CommandResult, ExecutionEnvironment, OutputCallback


@dataclass
class Call:
    argv: list[str]
    env: dict[str, str]
    cwd: str | None
    input_text: str | None


@dataclass
class ScriptedRun:
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""


@dataclass
class FakeEnvironment(ExecutionEnvironment):
    """
    In-memory sandbox that answers the commands drivers issue.

    Agent invocations (the agent binary with anything other than `--version` / `auth`) are
    answered from `agent_runs` in order; the last entry repeats once the queue is drained.
    """

    agent_binary: str
    installed: bool = False
    install_ok: bool = True
    installs_to_path: bool = True
    version_ok: set[str] | None = None
    write_ok: bool = True
    git_status: str = ""
    npm_prefix: str = "/usr/local"
    agent_runs: list[ScriptedRun] = field(default_factory=lambda: [ScriptedRun(stdout="done\n")])
    project_dir: str = "/workspace"
    home_dir: str = "/root"
    calls: list[Call] = field(default_factory=list)
    files: dict[str, str] = field(default_factory=dict)
    raise_on: str | None = None

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        input_text: str | None = None,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
    ) -> CommandResult:
        argv = list(argv)
        self.calls.append(Call(argv=argv, env=dict(env or {}), cwd=cwd, input_text=input_text))
        if self.raise_on is not None and argv[0] == self.raise_on:
            raise RuntimeError(f"sandbox unreachable while running {argv[0]}")

        if argv[0] == "which":
            if self.installed and self.installs_to_path:
                return CommandResult(argv, 0, f"/usr/local/bin/{argv[1]}\n")
            return CommandResult(argv, 1)
        if argv[:2] == ["npm", "prefix"]:
            return CommandResult(argv, 0, self.npm_prefix + "\n")
        if self.is_install(argv):
            if not self.install_ok:
                return CommandResult(argv, 1, "", "npm ERR! network unreachable\n")
            self.installed = True
            return CommandResult(argv, 0, "added 1 package\n")
        if argv[0] == "sh" and input_text is not None:
            if not self.write_ok:
                return CommandResult(argv, 1, "", "sh: cannot create file: Read-only file system\n")
            self.files[argv[-1]] = input_text
            return CommandResult(argv, 0)
        if argv[:2] == ["test", "-f"]:
            return CommandResult(argv, 0 if argv[2] in self.files else 1)
        if argv[:3] == ["git", "status", "--porcelain"]:
            return CommandResult(argv, 0, self.git_status)
        if posixpath.basename(argv[0]) == self.agent_binary:
            if argv[1:2] == ["--version"]:
                ok = self.installed and (self.version_ok is None or argv[0] in self.version_ok)
                return CommandResult(argv, 0 if ok else 127, "1.0.0\n" if ok else "")
            if argv[1:2] == ["auth"]:
                return CommandResult(argv, 0)
            return self._agent_run(argv, on_stdout, on_stderr)
        return CommandResult(argv, 0)

    @staticmethod
    def is_install(argv: Sequence[str]) -> bool:
        joined = " ".join(argv)
        return argv[0] in {"npm", "sh"} and "install" in joined and "cat >" not in joined

    def _agent_run(
        self,
        argv: list[str],
        on_stdout: OutputCallback | None,
        on_stderr: OutputCallback | None,
    ) -> CommandResult:
        scripted = self.agent_runs.pop(0) if len(self.agent_runs) > 1 else self.agent_runs[0]
        for line in scripted.stdout.splitlines(keepends=True):
            if on_stdout is not None:
                on_stdout(line)
        for line in scripted.stderr.splitlines(keepends=True):
            if on_stderr is not None:
                on_stderr(line)
        return CommandResult(argv, scripted.exit_code, scripted.stdout, scripted.stderr)

    # helpers for assertions

    def agent_calls(self) -> list[Call]:
        return [
            c
            for c in self.calls
            if posixpath.basename(c.argv[0]) == self.agent_binary
            and c.argv[1:2] not in (["--version"], ["auth"])
        ]

    def install_calls(self) -> list[Call]:
        return [c for c in self.calls if self.is_install(c.argv)]


@pytest.fixture
def fake_env_cls() -> type[FakeEnvironment]:
    return FakeEnvironment


@pytest.fixture
def scripted_run_cls() -> type[ScriptedRun]:
    return ScriptedRun
