from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from agent_drivers.redact import SecretRedactor
from agent_drivers.types import LogEntry, LogKind


@runtime_checkable
class TaskLogger(Protocol):
    def command(self, text: str) -> None: ...

    def info(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...

    def success(self, text: str) -> None: ...


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def make_log_event(kind: LogKind, text: str, *, task_id: str | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {"text": text}
    if task_id is not None:
        data["task_id"] = task_id
    return {"ts": utc_now_iso(), "type": kind, "data": data}


class MemoryTaskLogger:
    """Collect entries in memory; safe for concurrent appends."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[LogEntry] = []

    def _append(self, kind: LogKind, text: str) -> None:
        with self._lock:
            self._entries.append(LogEntry(kind=kind, text=text))

    def command(self, text: str) -> None:
        self._append("command", text)

    def info(self, text: str) -> None:
        self._append("info", text)

    def error(self, text: str) -> None:
        self._append("error", text)

    def success(self, text: str) -> None:
        self._append("success", text)

    @property
    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def texts(self, kind: LogKind | None = None) -> list[str]:
        return [e.text for e in self.entries if kind is None or e.kind == kind]


class JsonlTaskLogger:
    """
    Append one JSON event per line to `path`.

    Each write opens the file in append mode under a process-wide lock so that several
    invocations sharing one file never interleave partial lines.
    """

    _lock = threading.Lock()

    def __init__(self, path: Path, *, task_id: str | None = None) -> None:
        self.path = path
        self.task_id = task_id
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _append(self, kind: LogKind, text: str) -> None:
        line = json.dumps(make_log_event(kind, text, task_id=self.task_id), ensure_ascii=False)
        with self._lock, self.path.open("a", encoding="utf-8", newline="\n") as f:
            f.write(line + "\n")

    def command(self, text: str) -> None:
        self._append("command", text)

    def info(self, text: str) -> None:
        self._append("info", text)

    def error(self, text: str) -> None:
        self._append("error", text)

    def success(self, text: str) -> None:
        self._append("success", text)


class RedactingTaskLogger:
    """
    Front every sink with the redactor and keep an ordered copy of what was logged.

    Sink failures are swallowed: logging is never allowed to abort a driver pipeline.
    """

    def __init__(self, sink: TaskLogger | None, redactor: SecretRedactor) -> None:
        self._sink = sink
        self._redactor = redactor
        self._lock = threading.Lock()
        self._entries: list[LogEntry] = []

    @property
    def redactor(self) -> SecretRedactor:
        return self._redactor

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def _emit(self, kind: LogKind, text: str) -> None:
        if not isinstance(text, str):
            text = str(text)
        clean = self._redactor.redact(text)
        with self._lock:
            self._entries.append(LogEntry(kind=kind, text=clean))
        if self._sink is None:
            return
        try:
            getattr(self._sink, kind)(clean)
        except Exception:
            pass

    def command(self, text: str) -> None:
        self._emit("command", text)

    def info(self, text: str) -> None:
        self._emit("info", text)

    def error(self, text: str) -> None:
        self._emit("error", text)

    def success(self, text: str) -> None:
        self._emit("success", text)
