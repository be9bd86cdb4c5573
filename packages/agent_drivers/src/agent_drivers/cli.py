from __future__ import annotations

import argparse
import json
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from sandbox_runner import (
    CommandResult,
    DockerExecEnvironment,
    ExecutionEnvironment,
    LocalEnvironment,
)

from agent_drivers import __version__
from agent_drivers.base import ConfigArtifact
from agent_drivers.config import AgentSettings, load_agents_config, load_connectors
from agent_drivers.credentials import Credentials
from agent_drivers.errors import ConfigError, DriverError
from agent_drivers.redact import SecretRedactor
from agent_drivers.registry import available_agents, get_driver, run_agent
from agent_drivers.task_logger import JsonlTaskLogger, TaskLogger
from agent_drivers.types import Connector, DriverInvocation


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sandbox-agents",
        description="Run coding-agent CLIs inside a sandbox and report a normalized result.",
    )
    parser.add_argument("--version", action="store_true", help="Print package version and exit.")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("version", help="Print package version.")

    doctor = subparsers.add_parser("doctor", help="Check agent CLI binaries on PATH.")
    doctor.add_argument("--json", action="store_true", help="Emit machine-readable JSON.")

    subparsers.add_parser("agents", help="List supported agent ids.")

    render = subparsers.add_parser(
        "render-config", help="Print the native config an agent would receive (redacted)."
    )
    render.add_argument("--agent", required=True, choices=available_agents())
    render.add_argument("--connectors", type=Path, help="YAML or JSON connector list.")
    render.add_argument("--model", help="Model id to embed where the agent supports it.")

    run = subparsers.add_parser("run", help="Run one agent against an instruction.")
    run.add_argument("--agent", required=True, help="Agent id (see `agents`).")
    target = run.add_mutually_exclusive_group(required=True)
    target.add_argument("--container", help="Name of a running Docker container.")
    target.add_argument("--local-dir", type=Path, help="Run on the host in this directory.")
    run.add_argument("--home-dir", type=Path, help="HOME for --local-dir runs.")
    run.add_argument("--workdir", default="/workspace", help="Project dir inside --container.")
    run.add_argument("--instruction", required=True)
    run.add_argument("--model")
    run.add_argument("--connectors", type=Path)
    run.add_argument("--resume", action="store_true", help="Continue a previous session.")
    run.add_argument("--session-id", help="Session to continue (implies --resume).")
    run.add_argument("--config", type=Path, help="agents.yaml with per-agent settings.")
    run.add_argument("--log-jsonl", type=Path, help="Append log events to this file.")
    run.add_argument("--task-id")
    return parser


def _doctor_payload() -> dict[str, Any]:
    binaries: dict[str, str | None] = {}
    for agent_id in available_agents():
        binaries[agent_id] = shutil.which(get_driver(agent_id).binary)
    available = [name for name, resolved in binaries.items() if isinstance(resolved, str)]
    missing = [name for name, resolved in binaries.items() if resolved is None]
    return {
        "sandbox_agents_version": __version__,
        "binaries": binaries,
        "available": available,
        "missing": missing,
    }


def _print_doctor(payload: dict[str, Any], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    print(f"sandbox-agents version: {payload['sandbox_agents_version']}")
    binaries = payload.get("binaries")
    if not isinstance(binaries, dict):
        return
    for name in available_agents():
        value = binaries.get(name)
        rendered = value if isinstance(value, str) else "<missing>"
        print(f"{name}: {rendered}")


class _PreviewEnvironment(ExecutionEnvironment):
    """Stands in for a sandbox when only the configuration is rendered."""

    project_dir = "/workspace"
    home_dir = "/root"

    def run(self, argv: Sequence[str], **kwargs: Any) -> CommandResult:
        raise RuntimeError(f"render-config does not run commands: {argv[0]!r}")


def render_native_config(
    agent_id: str,
    connectors: Sequence[Connector],
    *,
    credentials: Credentials,
    model: str | None = None,
    settings: AgentSettings | None = None,
    logger: TaskLogger | None = None,
) -> ConfigArtifact | None:
    """Build the artifact the driver would write, through the driver's own routing."""

    driver = get_driver(agent_id, settings)
    invocation = DriverInvocation(
        env=_PreviewEnvironment(),
        instruction="",
        logger=logger,
        credentials=credentials,
        selected_model=model,
        connectors=tuple(connectors),
    )
    return driver.preview_config(invocation)


class _StderrTaskLogger:
    def _emit(self, kind: str, text: str) -> None:
        print(f"[{kind}] {text}", file=sys.stderr, flush=True)

    def command(self, text: str) -> None:
        self._emit("command", text)

    def info(self, text: str) -> None:
        self._emit("info", text)

    def error(self, text: str) -> None:
        self._emit("error", text)

    def success(self, text: str) -> None:
        self._emit("success", text)


def _open_environment(args: argparse.Namespace) -> ExecutionEnvironment:
    if args.container:
        env = DockerExecEnvironment(args.container, project_dir=args.workdir)
        env.ensure_running()
        return env
    return LocalEnvironment(args.local_dir, home_dir=args.home_dir)


def _cmd_run(args: argparse.Namespace) -> int:
    settings: dict[str, AgentSettings] = {}
    connectors: list[Connector] = []
    try:
        if args.config is not None:
            settings = load_agents_config(args.config)
        if args.connectors is not None:
            connectors = load_connectors(args.connectors)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 2

    logger: TaskLogger
    if args.log_jsonl is not None:
        logger = JsonlTaskLogger(args.log_jsonl, task_id=args.task_id)
    else:
        logger = _StderrTaskLogger()

    try:
        env = _open_environment(args)
    except (RuntimeError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2

    with env:
        result = run_agent(
            args.agent,
            env,
            args.instruction,
            logger,
            selected_model=args.model,
            connectors=connectors,
            is_resumed=bool(args.resume or args.session_id),
            session_id=args.session_id,
            credentials=Credentials.from_env(),
            settings=settings,
        )
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.success else 1


def _cmd_render_config(args: argparse.Namespace) -> int:
    try:
        connectors = load_connectors(args.connectors) if args.connectors is not None else []
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 2
    credentials = Credentials.from_env()
    try:
        artifact = render_native_config(
            args.agent,
            connectors,
            credentials=credentials,
            model=args.model,
            logger=_StderrTaskLogger(),
        )
    except (DriverError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2
    if artifact is None:
        print(f"{args.agent} writes no configuration file for this input.", file=sys.stderr)
        return 0
    redactor = SecretRedactor.for_invocation(credentials, connectors)
    print(f"# ~/{artifact.relative_path}", file=sys.stderr)
    sys.stdout.write(redactor.redact(artifact.content))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version or args.command == "version":
        print(__version__)
        return 0

    if args.command == "doctor":
        _print_doctor(_doctor_payload(), as_json=bool(args.json))
        return 0

    if args.command == "agents":
        for agent_id in available_agents():
            print(agent_id)
        return 0

    if args.command == "render-config":
        return _cmd_render_config(args)

    if args.command == "run":
        return _cmd_run(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
