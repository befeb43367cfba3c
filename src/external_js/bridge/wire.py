from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from external_js.bridge.errors import ProtocolError

RESULT_START = "__RESULT_START__"
RESULT_END = "__RESULT_END__"

# Reserved result keys; namespaced so ordinary user fields never collide with them.
METRICS_KEY = "__bridge_metrics__"
CHECKS_KEY = "__bridge_checks__"
RESERVED_KEYS = (METRICS_KEY, CHECKS_KEY)

TelemetryKind = Literal["counter", "gauge", "trend", "rate"]
TELEMETRY_KINDS: tuple[str, ...] = ("counter", "gauge", "trend", "rate")


@dataclass(frozen=True, slots=True)
class TelemetryEntry:
    # One metric emission from guest code; value stays raw until the merge step coerces it.
    kind: str
    name: str
    value: object
    tags: dict[str, str] = field(default_factory=dict)

    def to_wire(self) -> dict[str, object]:
        return {"kind": self.kind, "name": self.name, "value": self.value, "tags": dict(self.tags)}


@dataclass(frozen=True, slots=True)
class CheckEntry:
    name: str
    passed: bool

    def to_wire(self) -> dict[str, object]:
        return {"name": self.name, "passed": self.passed}


def encode_result(
    result: object,
    *,
    metrics: list[TelemetryEntry] | None = None,
    checks: list[CheckEntry] | None = None,
) -> str:
    # Guest-side framing: start marker line, one JSON object, end marker line.
    body: dict[str, Any] = dict(result) if isinstance(result, dict) else {}
    if metrics:
        body[METRICS_KEY] = _existing(body.get(METRICS_KEY)) + [entry.to_wire() for entry in metrics]
    if checks:
        body[CHECKS_KEY] = _existing(body.get(CHECKS_KEY)) + [entry.to_wire() for entry in checks]
    return f"{RESULT_START}\n{json.dumps(body, separators=(',', ':'), ensure_ascii=False)}\n{RESULT_END}\n"


def extract_result(output: str) -> dict[str, Any]:
    # Only text between the first start marker and the next end marker is protocol.
    start = output.find(RESULT_START)
    if start < 0:
        raise ProtocolError("result markers not found in output", output=output)
    body_start = start + len(RESULT_START)
    end = output.find(RESULT_END, body_start)
    if end < 0:
        raise ProtocolError("result end marker not found in output", output=output)

    text = output[body_start:end].strip()
    try:
        result = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"failed to decode result JSON: {exc}", output=output) from exc
    if not isinstance(result, dict):
        raise ProtocolError(f"result must be a JSON object, got {type(result).__name__}", output=output)
    return result


def decode_telemetry(raw: object) -> list[TelemetryEntry]:
    # Malformed entries are skipped; an unknown kind falls back to counter.
    if not isinstance(raw, list):
        return []
    entries: list[TelemetryEntry] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        # Older guests send "type" instead of "kind".
        kind = item.get("kind", item.get("type"))
        if kind not in TELEMETRY_KINDS:
            kind = "counter"
        tags_raw = item.get("tags")
        tags = {}
        if isinstance(tags_raw, dict):
            tags = {str(key): value for key, value in tags_raw.items() if isinstance(value, str)}
        entries.append(TelemetryEntry(kind=kind, name=name, value=item.get("value"), tags=tags))
    return entries


def decode_checks(raw: object) -> list[CheckEntry]:
    if not isinstance(raw, list):
        return []
    entries: list[CheckEntry] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        passed = item.get("passed", item.get("ok", False))
        entries.append(CheckEntry(name=name, passed=bool(passed)))
    return entries


def _existing(value: object) -> list[object]:
    return list(value) if isinstance(value, list) else []
