from __future__ import annotations

import threading

from sandbox_runner import OutputCallback


class CaptureSink:
    """
    Accumulate streamed output and optionally forward each chunk as it arrives.

    Buffered drivers pass no `forward`; they read `text` after the command finishes.
    """

    def __init__(self, forward: OutputCallback | None = None) -> None:
        self._forward = forward
        self._chunks: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, chunk: str) -> None:
        with self._lock:
            self._chunks.append(chunk)
        if self._forward is None or not chunk.strip():
            return
        try:
            self._forward(chunk.rstrip("\n"))
        except Exception:
            pass

    @property
    def text(self) -> str:
        with self._lock:
            return "".join(self._chunks)
