from __future__ import annotations

import json
import threading
from typing import Any

from external_js.bridge.duration import parse_duration
from external_js.bridge.errors import BridgeError, CallerError
from external_js.bridge.invoker import Invocation, ProcessInvoker
from external_js.bridge.merge import MetricCache, MetricsMerge
from external_js.bridge.options import RunRequest, interpret_arguments
from external_js.bridge.runtimes import Runtime, select_runtime
from external_js.config.loader import load_config
from external_js.config.logging import build_log_sink
from external_js.config.models import BridgeConfig
from external_js.guest import load_runner_script
from external_js.host.execution import ExecutionUnit
from external_js.host.metrics import InMemoryMetricRegistry, MetricKind, MetricRegistry, ValueType
from external_js.observability.adapters.logging import LogSink
from external_js.observability.domain.logging import LogMessage
from external_js.observability.domain.telemetry import Sample


class Bridge:
    """Synchronous call surface for running external JS flows.

    One bridge is meant to be owned by one execution unit; several bridges may share a
    metric registry. ``run`` blocks until the guest process exits or the deadline fires.

    Supports both call shapes::

        bridge.run("lib.node.js", {"user": "alice"})
        bridge.run("lib.js", {"payload": {"user": "alice"}, "timeout": "5s", "runtime": "bun"})
    """

    def __init__(
        self,
        *,
        config: BridgeConfig | None = None,
        registry: MetricRegistry | None = None,
        unit: ExecutionUnit | None = None,
        log: LogSink | None = None,
        script: str | None = None,
    ) -> None:
        self.config = config if config is not None else BridgeConfig()
        self.registry = registry if registry is not None else InMemoryMetricRegistry()
        self.unit = unit
        # Sinks built from config belong to the bridge; injected ones stay with the caller.
        self._owns_log = log is None
        self._log = log if log is not None else build_log_sink(self.config.logging)
        self._cache = MetricCache(self.registry)
        self._invoker = ProcessInvoker(
            command_for=self.config.command_for,
            script=script if script is not None else load_runner_script(),
        )
        self._merge = MetricsMerge(self._cache, checks_metric=self.config.metrics.checks, log=self._log)
        self._duration_metric = self._cache.get_or_create(
            self.config.metrics.duration, MetricKind.TREND, ValueType.TIME
        )
        self._invocations_metric = self._cache.get_or_create(self.config.metrics.invocations, MetricKind.COUNTER)

    def run(self, entry: str, payload_or_options: object = None) -> dict[str, Any]:
        request = interpret_arguments(entry, payload_or_options)
        runtime = select_runtime(request.entry, request.runtime, self.config.default_runtime)
        unit = self.unit
        context = (unit if unit is not None else ExecutionUnit()).execution_context()
        timeout, timeout_label = self._effective_timeout(request, unit)

        invocation = Invocation(
            runtime=runtime,
            entry=request.entry,
            payload_json=_to_json(request.payload, "payload"),
            context_json=_to_json(context, "execution context"),
            env=dict(request.env),
            timeout=timeout,
            timeout_label=timeout_label,
        )
        self._emit("debug", "bridge.invoke.start", entry=request.entry, runtime=runtime.name, timeout=timeout_label)
        try:
            outcome = self._invoker.invoke(invocation)
        except BridgeError as exc:
            self._emit(
                "error",
                "bridge.invoke.failed",
                entry=request.entry,
                runtime=runtime.name,
                kind=exc.kind,
                exit_code=getattr(exc, "exit_code", None),
                error=exc.message,
            )
            raise

        self._record_call(request.entry, runtime, outcome.duration)
        result = self._merge.apply(outcome.result, unit)
        self._emit(
            "info",
            "bridge.invoke.ok",
            entry=request.entry,
            runtime=runtime.name,
            duration_ms=round(outcome.duration * 1000, 3),
        )
        return result

    def close(self) -> None:
        if self._owns_log:
            self._log.close()

    def __enter__(self) -> Bridge:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _effective_timeout(self, request: RunRequest, unit: ExecutionUnit | None) -> tuple[float | None, str | None]:
        # The earlier of the call timeout and the unit's ambient deadline bounds the process.
        timeout = parse_duration(request.timeout) if request.timeout is not None else None
        label = request.timeout
        ambient = unit.remaining() if unit is not None else None
        if ambient is not None and (timeout is None or ambient < timeout):
            return ambient, "execution deadline"
        return timeout, label

    def _record_call(self, entry: str, runtime: Runtime, duration: float) -> None:
        unit = self.unit
        if unit is None or unit.samples is None:
            return
        tags = {**unit.identity_tags(), "entry": entry, "runtime": runtime.name}
        unit.samples.push(Sample(metric=self._duration_metric, value=duration * 1000.0, tags=tags))
        unit.samples.push(Sample(metric=self._invocations_metric, value=1.0, tags=dict(tags)))

    def _emit(self, level: str, message: str, **fields: object) -> None:
        self._log.emit(LogMessage(level=level, message=message, fields=fields))


def _to_json(value: object, what: str) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise CallerError(f"failed to marshal {what}: {exc}") from exc


_default_bridge: Bridge | None = None
_default_lock = threading.Lock()


def default_bridge() -> Bridge:
    # Process-wide bridge configured from EXTERNAL_JS_CONFIG (or defaults), created on first use.
    global _default_bridge
    with _default_lock:
        if _default_bridge is None:
            _default_bridge = Bridge(config=load_config())
        return _default_bridge


def run(entry: str, payload_or_options: object = None) -> dict[str, Any]:
    return default_bridge().run(entry, payload_or_options)
