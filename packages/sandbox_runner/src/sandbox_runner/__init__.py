from sandbox_runner.docker import DockerExecEnvironment, docker_exec_prefix
from sandbox_runner.local import LocalEnvironment
from sandbox_runner.process import run_process
from sandbox_runner.spec import CommandResult, ExecutionEnvironment, OutputCallback

__all__ = [
    "CommandResult",
    "DockerExecEnvironment",
    "ExecutionEnvironment",
    "LocalEnvironment",
    "OutputCallback",
    "docker_exec_prefix",
    "run_process",
]
