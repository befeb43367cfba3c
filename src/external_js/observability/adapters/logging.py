from __future__ import annotations

import json
import sys
import threading
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from external_js.observability.domain.logging import LOG_LEVELS, LogMessage


@runtime_checkable
class LogSink(Protocol):
    def emit(self, message: LogMessage) -> None:
        raise NotImplementedError("LogSink.emit must be implemented")

    def close(self) -> None:
        # Sinks without resources have nothing to release.
        return None


class NullLogSink(LogSink):
    def emit(self, message: LogMessage) -> None:
        _ = message
        return None


class StderrLogSink(LogSink):
    # One JSON object per line on stderr; stdout stays free for results.
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def emit(self, message: LogMessage) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        print(json.dumps(_log_to_dict(message), separators=(",", ":"), ensure_ascii=False, default=str), file=stream)


class JsonlLogSink(LogSink):
    # File-backed structured log sink.
    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")
        self._lock = threading.Lock()

    def emit(self, message: LogMessage) -> None:
        payload = json.dumps(_log_to_dict(message), separators=(",", ":"), ensure_ascii=False, default=str)
        with self._lock:
            self._file.write(payload + "\n")
            self._file.flush()

    def close(self) -> None:
        self._file.close()


class LevelFilterLogSink(LogSink):
    # Drops records below the configured threshold before they reach the wrapped sink.
    def __init__(self, sink: LogSink, level: str = "info") -> None:
        if level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of: {sorted(LOG_LEVELS)}")
        self._sink = sink
        self._threshold = LOG_LEVELS[level]

    def emit(self, message: LogMessage) -> None:
        if LOG_LEVELS[message.level] >= self._threshold:
            self._sink.emit(message)

    def close(self) -> None:
        self._sink.close()


def _log_to_dict(message: LogMessage) -> dict[str, object]:
    return {
        "level": message.level,
        "message": message.message,
        "timestamp": message.timestamp.isoformat().replace("+00:00", "Z"),
        "fields": message.fields,
    }
