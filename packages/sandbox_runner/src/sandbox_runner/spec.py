from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Self

OutputCallback = Callable[[str], None]


@dataclass(frozen=True)
class CommandResult:
    argv: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class ExecutionEnvironment:
    """
    A provisioned, disposable environment holding a cloned project.

    Commands run one at a time and block until the process exits. When `on_stdout` /
    `on_stderr` are given, output chunks are delivered to them as they arrive, and the full
    text is still returned on the `CommandResult`.
    """

    project_dir: str
    home_dir: str

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
        raise NotImplementedError

    def close(self) -> None:
        return

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()
