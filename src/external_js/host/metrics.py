from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from external_js.observability.domain.telemetry import Sample


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    TREND = "trend"
    RATE = "rate"


class ValueType(str, Enum):
    DEFAULT = "default"
    TIME = "time"


class MetricRegistryError(ValueError):
    # Raised when a metric name is re-registered with a different kind or value type.
    pass


@dataclass(frozen=True, slots=True)
class Metric:
    name: str
    kind: MetricKind
    contains: ValueType = ValueType.DEFAULT

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Metric requires non-empty name")


@runtime_checkable
class MetricRegistry(Protocol):
    # Host-owned typed metric registry; the bridge only looks up and registers.
    def get(self, name: str) -> Metric | None:
        raise NotImplementedError("MetricRegistry.get must be implemented")

    def new_metric(self, name: str, kind: MetricKind, contains: ValueType = ValueType.DEFAULT) -> Metric:
        raise NotImplementedError("MetricRegistry.new_metric must be implemented")


@runtime_checkable
class SampleSink(Protocol):
    def push(self, sample: Sample) -> None:
        raise NotImplementedError("SampleSink.push must be implemented")


class InMemoryMetricRegistry(MetricRegistry):
    # Process-lifetime registry for standalone hosts and tests.
    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Metric | None:
        with self._lock:
            return self._metrics.get(name)

    def new_metric(self, name: str, kind: MetricKind, contains: ValueType = ValueType.DEFAULT) -> Metric:
        with self._lock:
            existing = self._metrics.get(name)
            if existing is None:
                metric = Metric(name=name, kind=kind, contains=contains)
                self._metrics[name] = metric
                return metric
            if existing.kind != kind or existing.contains != contains:
                raise MetricRegistryError(
                    f"metric {name!r} already registered as {existing.kind.value}/{existing.contains.value}"
                )
            return existing

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._metrics)


class InMemorySampleSink(SampleSink):
    def __init__(self) -> None:
        self.samples: list[Sample] = []
        self._lock = threading.Lock()

    def push(self, sample: Sample) -> None:
        with self._lock:
            self.samples.append(sample)

    def for_metric(self, name: str) -> list[Sample]:
        with self._lock:
            return [sample for sample in self.samples if sample.metric.name == name]
