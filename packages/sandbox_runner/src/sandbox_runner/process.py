from __future__ import annotations

import subprocess
import threading
from collections.abc import Mapping, Sequence
from typing import IO

from sandbox_runner.spec import CommandResult, OutputCallback


def _pump(stream: IO[str] | None, chunks: list[str], callback: OutputCallback | None) -> None:
    if stream is None:
        return
    for line in stream:
        chunks.append(line)
        if callback is None:
            continue
        # Callbacks are best-effort observers; a failing observer must not stop the capture.
        try:
            callback(line)
        except Exception:
            pass


def run_process(
    argv: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    on_stdout: OutputCallback | None = None,
    on_stderr: OutputCallback | None = None,
    launch_hint: str | None = None,
) -> CommandResult:
    """
    Run `argv` to completion, streaming stdout/stderr line by line to the optional callbacks.

    Both streams are always accumulated and returned. A missing executable is reported as
    exit code 127 (the shell convention) instead of raising.
    """

    full_argv = [str(a) for a in argv]
    try:
        proc = subprocess.Popen(  # noqa: S603
            full_argv,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        lines = [f"Failed to launch process: {e}", f"argv0={full_argv[0]!r}"]
        if launch_hint:
            lines.append(launch_hint)
        return CommandResult(argv=full_argv, exit_code=127, stdout="", stderr="\n".join(lines))

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    readers = [
        threading.Thread(
            target=_pump, args=(proc.stdout, stdout_chunks, on_stdout), daemon=True
        ),
        threading.Thread(
            target=_pump, args=(proc.stderr, stderr_chunks, on_stderr), daemon=True
        ),
    ]
    for reader in readers:
        reader.start()

    if input_text is not None and proc.stdin is not None:
        try:
            proc.stdin.write(input_text)
        except BrokenPipeError:
            pass
        finally:
            try:
                proc.stdin.close()
            except Exception:
                pass

    proc.wait()
    for reader in readers:
        reader.join()

    return CommandResult(
        argv=full_argv,
        exit_code=proc.returncode if proc.returncode is not None else 1,
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
    )
