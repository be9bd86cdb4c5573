from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from sandbox_runner.process import run_process
from sandbox_runner.spec import CommandResult, ExecutionEnvironment, OutputCallback


class LocalEnvironment(ExecutionEnvironment):
    """
    Run commands directly on the host, rooted at a project directory.

    `home_dir` is exported as `HOME` so agent CLIs write their configuration outside the
    project tree (and outside the real user's home when pointed at a scratch directory).
    """

    def __init__(
        self,
        project_dir: Path | str,
        *,
        home_dir: Path | str | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self.project_dir = str(Path(project_dir).resolve())
        self.home_dir = str(Path(home_dir).resolve()) if home_dir is not None else str(
            Path.home()
        )
        self._base_env = dict(base_env) if base_env is not None else dict(os.environ)

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
        merged = dict(self._base_env)
        merged["HOME"] = self.home_dir
        if env:
            merged.update({k: v for k, v in env.items() if isinstance(v, str)})
        Path(self.home_dir).mkdir(parents=True, exist_ok=True)
        return run_process(
            argv,
            cwd=cwd or self.project_dir,
            env=merged,
            input_text=input_text,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
        )
