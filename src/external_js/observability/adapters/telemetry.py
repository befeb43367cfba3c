from __future__ import annotations

import json
import sys
from typing import TextIO

from external_js.host.metrics import SampleSink
from external_js.observability.domain.telemetry import Sample


class StreamSampleSink(SampleSink):
    # Writes each sample as one JSON line; used by the CLI host.
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def push(self, sample: Sample) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        print(json.dumps(sample_to_dict(sample), separators=(",", ":"), ensure_ascii=False), file=stream)


def sample_to_dict(sample: Sample) -> dict[str, object]:
    return {
        "metric": sample.metric.name,
        "kind": sample.metric.kind.value,
        "value": sample.value,
        "timestamp": sample.timestamp.isoformat().replace("+00:00", "Z"),
        "tags": sample.tags,
    }
