from __future__ import annotations

import os
import re
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import replace

from sandbox_runner.process import run_process
from sandbox_runner.spec import CommandResult, ExecutionEnvironment, OutputCallback

_DOCKER_TIMEOUT_ENV = "SANDBOX_RUNNER_DOCKER_TIMEOUT_SECONDS"
_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _get_docker_timeout_seconds() -> float | None:
    raw = os.environ.get(_DOCKER_TIMEOUT_ENV)
    if raw is None or not raw.strip():
        return None

    try:
        timeout = float(raw)
    except ValueError:
        return None

    if timeout <= 0:
        return None
    return timeout


def _docker_run(
    argv: list[str],
    *,
    timeout_seconds: float | None = None,
) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            argv,
            check=False,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout_seconds,
        )
    except FileNotFoundError as e:
        raise RuntimeError(
            "Docker CLI not found. Ensure `docker` is installed and available on PATH."
        ) from e
    except subprocess.TimeoutExpired as e:
        timeout_note = f"{timeout_seconds:.1f}s" if timeout_seconds is not None else "unknown"
        raise RuntimeError(
            "Docker command timed out.\n"
            f"timeout={timeout_note}\n"
            f"argv={' '.join(argv)}\n"
            "Tip: adjust it via docker_timeout_seconds or "
            "SANDBOX_RUNNER_DOCKER_TIMEOUT_SECONDS (0 disables it)."
        ) from e


def docker_exec_prefix(
    *,
    container_name: str,
    workdir: str,
    env: Mapping[str, str] | None = None,
    interactive: bool = False,
    docker_binary: str = "docker",
    user: str | None = None,
) -> list[str]:
    """
    Build a `docker exec ... <container>` prefix.

    Environment values must travel as `-e KEY=VALUE` flags: setting `env=...` on the host
    process does not reach the process inside the container. Keys are emitted in sorted order
    so the prefix is deterministic.
    """

    out = [docker_binary, "exec"]
    if interactive:
        out.append("-i")
    if user:
        out.extend(["-u", user])
    out.extend(["-w", workdir])
    for key in sorted(env or {}):
        value = (env or {})[key]
        if not isinstance(value, str) or not _ENV_KEY_RE.match(key):
            continue
        out.extend(["-e", f"{key}={value}"])
    out.append(container_name)
    return out


class DockerExecEnvironment(ExecutionEnvironment):
    """
    Run commands inside an already-running container via `docker exec`.

    The container (and the cloned project inside it) is provisioned by the caller; this class
    never starts or removes it.
    """

    def __init__(
        self,
        container_name: str,
        *,
        project_dir: str = "/workspace",
        home_dir: str = "/root",
        user: str | None = None,
        docker_binary: str = "docker",
        docker_timeout_seconds: float | None = None,
    ) -> None:
        if not container_name or not container_name.strip():
            raise ValueError("container_name must be a non-empty string.")
        self.container_name = container_name.strip()
        self.project_dir = project_dir
        self.home_dir = home_dir
        self.user = user
        self.docker_binary = docker_binary
        self.docker_timeout_seconds = (
            docker_timeout_seconds
            if docker_timeout_seconds is not None
            else _get_docker_timeout_seconds()
        )

    def ensure_running(self) -> None:
        proc = _docker_run(
            [
                self.docker_binary,
                "inspect",
                "-f",
                "{{.State.Running}}",
                self.container_name,
            ],
            timeout_seconds=self.docker_timeout_seconds,
        )
        if proc.returncode == 0 and proc.stdout.strip() == "true":
            return
        msg = proc.stderr.strip() or proc.stdout.strip()
        raise RuntimeError(
            "Docker container is not running.\n"
            f"container_name={self.container_name}\n"
            f"{msg}\n"
            "Tip: start the sandbox container before attaching to it."
        )

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
        exec_env = {"HOME": self.home_dir}
        if env:
            exec_env.update(env)
        prefix = docker_exec_prefix(
            container_name=self.container_name,
            workdir=cwd or self.project_dir,
            env=exec_env,
            interactive=input_text is not None,
            docker_binary=self.docker_binary,
            user=self.user,
        )
        result = run_process(
            [*prefix, *argv],
            input_text=input_text,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
            launch_hint="Tip: ensure `docker` is installed and available on PATH.",
        )
        # The prefix carries `-e KEY=VALUE` flags; only the in-container argv is reported back.
        return replace(result, argv=[str(a) for a in argv])
