from __future__ import annotations

from pathlib import Path

from external_js.config.errors import ConfigError
from external_js.config.models import LoggingConfig
from external_js.observability.adapters.logging import (
    JsonlLogSink,
    LevelFilterLogSink,
    LogSink,
    NullLogSink,
    StderrLogSink,
)


def build_log_sink(settings: LoggingConfig) -> LogSink:
    # Disabled logging still yields a sink so callers never branch on None.
    if not settings.enabled:
        return NullLogSink()
    if settings.sink == "jsonl":
        if not settings.path:
            raise ConfigError("logging.path is required when sink is 'jsonl'")
        sink: LogSink = JsonlLogSink(Path(settings.path))
    else:
        sink = StderrLogSink()
    return LevelFilterLogSink(sink, settings.level)
