from __future__ import annotations

import math
import threading
from typing import Any

from external_js.bridge.wire import CHECKS_KEY, METRICS_KEY, decode_checks, decode_telemetry
from external_js.host.execution import ExecutionUnit
from external_js.host.metrics import Metric, MetricKind, MetricRegistry, ValueType
from external_js.observability.adapters.logging import LogSink, NullLogSink
from external_js.observability.domain.logging import LogMessage
from external_js.observability.domain.telemetry import Sample


class MetricCache:
    # Name -> metric lookup shared by one bridge; first kind registered for a name is permanent.
    def __init__(self, registry: MetricRegistry) -> None:
        self._registry = registry
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def get_or_create(self, name: str, kind: MetricKind, contains: ValueType = ValueType.DEFAULT) -> Metric:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is not None:
                return metric
            # Another owner of the registry may have bound the name already.
            metric = self._registry.get(name)
            if metric is None:
                metric = self._registry.new_metric(name, kind, contains)
            self._metrics[name] = metric
            return metric


def coerce_value(value: object) -> float | None:
    # Only finite real numbers survive; bools, strings and NaN/inf are dropped.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number):
        return None
    return number


class MetricsMerge:
    def __init__(self, cache: MetricCache, *, checks_metric: str = "checks", log: LogSink | None = None) -> None:
        self._cache = cache
        self._checks_metric = checks_metric
        self._log = log if log is not None else NullLogSink()

    def apply(self, result: dict[str, Any], unit: ExecutionUnit | None) -> dict[str, Any]:
        # Pushes telemetry and checks from the wire result, then strips the reserved keys.
        telemetry = decode_telemetry(result.pop(METRICS_KEY, None))
        checks = decode_checks(result.pop(CHECKS_KEY, None))
        if unit is None or unit.samples is None:
            return result

        ambient = unit.identity_tags()
        for entry in telemetry:
            value = coerce_value(entry.value)
            if value is None:
                self._log.emit(
                    LogMessage(
                        level="debug",
                        message="bridge.metrics.dropped",
                        fields={"metric": entry.name, "value": repr(entry.value)},
                    )
                )
                continue
            metric = self._cache.get_or_create(entry.name, MetricKind(entry.kind))
            unit.samples.push(Sample(metric=metric, value=value, tags={**entry.tags, **ambient}))

        if checks:
            checks_metric = self._cache.get_or_create(self._checks_metric, MetricKind.RATE)
            for check in checks:
                unit.samples.push(
                    Sample(
                        metric=checks_metric,
                        value=1.0 if check.passed else 0.0,
                        tags={**ambient, "check": check.name},
                    )
                )
        return result
