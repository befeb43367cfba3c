from .execution import ExecutionUnit
from .metrics import (
    InMemoryMetricRegistry,
    InMemorySampleSink,
    Metric,
    MetricKind,
    MetricRegistry,
    MetricRegistryError,
    SampleSink,
    ValueType,
)
