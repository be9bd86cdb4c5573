from __future__ import annotations

import json
import threading
from pathlib import Path

from agent_drivers import (
    JsonlTaskLogger,
    MemoryTaskLogger,
    RedactingTaskLogger,
    SecretRedactor,
    TaskLogger,
)
from agent_drivers.capture import CaptureSink
from agent_drivers.types import LogEntry


def test_memory_logger_keeps_order_and_kinds() -> None:
    logger = MemoryTaskLogger()
    logger.command("npm install -g x")
    logger.info("installing")
    logger.error("oops")
    logger.success("done")

    assert [e.kind for e in logger.entries] == ["command", "info", "error", "success"]
    assert logger.texts("info") == ["installing"]
    assert logger.texts() == ["npm install -g x", "installing", "oops", "done"]
    assert isinstance(logger, TaskLogger)


def test_jsonl_logger_writes_one_event_per_line(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "task.jsonl"
    logger = JsonlTaskLogger(path, task_id="t-1")
    logger.info("hello")
    logger.error("ünïcode")

    lines = path.read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [e["type"] for e in events] == ["info", "error"]
    assert events[0]["data"] == {"text": "hello", "task_id": "t-1"}
    assert events[1]["data"]["text"] == "ünïcode"
    assert all(isinstance(e["ts"], str) and e["ts"] for e in events)


def test_jsonl_logger_without_task_id(tmp_path: Path) -> None:
    path = tmp_path / "task.jsonl"
    JsonlTaskLogger(path).success("ok")
    event = json.loads(path.read_text(encoding="utf-8"))
    assert event["data"] == {"text": "ok"}


def test_jsonl_logger_concurrent_writers_never_interleave(tmp_path: Path) -> None:
    path = tmp_path / "shared.jsonl"
    loggers = [JsonlTaskLogger(path, task_id=f"t{i}") for i in range(4)]

    def _write(logger: JsonlTaskLogger) -> None:
        for n in range(50):
            logger.info(f"line {n} " + "x" * 200)

    threads = [threading.Thread(target=_write, args=(lg,)) for lg in loggers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    events = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(events) == 200
    assert {e["data"]["task_id"] for e in events} == {"t0", "t1", "t2", "t3"}


def test_redacting_logger_scrubs_before_the_sink() -> None:
    sink = MemoryTaskLogger()
    logger = RedactingTaskLogger(sink, SecretRedactor(secrets=("topsecret",)))
    logger.command("export KEY=topsecret")
    logger.info("value topsecret seen")

    assert all("topsecret" not in t for t in sink.texts())
    assert logger.entries == (
        LogEntry(kind="command", text="export KEY=[REDACTED]"),
        LogEntry(kind="info", text="value [REDACTED] seen"),
    )


def test_redacting_logger_swallows_sink_failures() -> None:
    class Broken:
        def info(self, text: str) -> None:
            raise RuntimeError("sink down")

    logger = RedactingTaskLogger(Broken(), SecretRedactor())  # type: ignore[arg-type]
    logger.info("still recorded")
    assert logger.entries == (LogEntry(kind="info", text="still recorded"),)


def test_redacting_logger_without_sink() -> None:
    logger = RedactingTaskLogger(None, SecretRedactor())
    logger.success("fine")
    assert [e.text for e in logger.entries] == ["fine"]


def test_capture_sink_accumulates_and_forwards_non_blank_lines() -> None:
    forwarded: list[str] = []
    sink = CaptureSink(forwarded.append)
    for chunk in ["first\n", "\n", "second\n"]:
        sink(chunk)

    assert sink.text == "first\n\nsecond\n"
    assert forwarded == ["first", "second"]


def test_capture_sink_survives_forward_errors() -> None:
    def _boom(_: str) -> None:
        raise OSError("closed")

    sink = CaptureSink(_boom)
    sink("data\n")
    assert sink.text == "data\n"
