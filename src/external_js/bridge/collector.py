from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from external_js.bridge.wire import CheckEntry, TelemetryEntry

# Invocation-scoped collection: module-level helpers write to whichever collector is current.


class Counter:
    def __init__(self, name: str, collector: Collector) -> None:
        self.name = name
        self._collector = collector

    def add(self, value: float = 1, tags: dict[str, str] | None = None) -> None:
        self._collector.record("counter", self.name, value, tags)


class Gauge:
    def __init__(self, name: str, collector: Collector) -> None:
        self.name = name
        self._collector = collector

    def set(self, value: float, tags: dict[str, str] | None = None) -> None:
        self._collector.record("gauge", self.name, value, tags)


class Trend:
    def __init__(self, name: str, collector: Collector) -> None:
        self.name = name
        self._collector = collector

    def add(self, value: float, tags: dict[str, str] | None = None) -> None:
        self._collector.record("trend", self.name, value, tags)


class Rate:
    def __init__(self, name: str, collector: Collector) -> None:
        self.name = name
        self._collector = collector

    def add(self, value: object, tags: dict[str, str] | None = None) -> None:
        # Rates record truthiness.
        self._collector.record("rate", self.name, 1 if value else 0, tags)


class Collector:
    # Per-invocation buffers for telemetry and check entries, in emission order.
    def __init__(self) -> None:
        self.metrics: list[TelemetryEntry] = []
        self.checks: list[CheckEntry] = []

    def counter(self, name: str) -> Counter:
        return Counter(name, self)

    def gauge(self, name: str) -> Gauge:
        return Gauge(name, self)

    def trend(self, name: str) -> Trend:
        return Trend(name, self)

    def rate(self, name: str) -> Rate:
        return Rate(name, self)

    def check(self, name: str, condition: object) -> bool:
        passed = bool(condition)
        self.checks.append(CheckEntry(name=name, passed=passed))
        return passed

    def record(self, kind: str, name: str, value: object, tags: dict[str, str] | None) -> None:
        self.metrics.append(TelemetryEntry(kind=kind, name=name, value=value, tags=dict(tags or {})))


_current: ContextVar[Collector | None] = ContextVar("external_js_collector", default=None)


@contextmanager
def collecting(collector: Collector | None = None) -> Iterator[Collector]:
    # Install a collector for the duration of one invocation; the previous one is restored on exit.
    active = collector if collector is not None else Collector()
    token = _current.set(active)
    try:
        yield active
    finally:
        _current.reset(token)


def current_collector() -> Collector:
    collector = _current.get()
    if collector is None:
        raise RuntimeError("metrics and checks can only be used inside an invocation")
    return collector


def counter(name: str) -> Counter:
    return current_collector().counter(name)


def gauge(name: str) -> Gauge:
    return current_collector().gauge(name)


def trend(name: str) -> Trend:
    return current_collector().trend(name)


def rate(name: str) -> Rate:
    return current_collector().rate(name)


def check(name: str, condition: object) -> bool:
    return current_collector().check(name, condition)
