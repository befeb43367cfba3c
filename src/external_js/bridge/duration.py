from __future__ import annotations

import re

from external_js.bridge.errors import CallerError

# Go-style duration strings: "300ms", "5s", "1m30s", "1.5h", "-2s", "0".
_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    # Returns seconds; every component needs a unit except the bare "0".
    if not isinstance(text, str):
        raise CallerError(f"invalid timeout value {text!r}: expected a duration string")
    raw = text.strip()
    sign = 1.0
    body = raw
    if body[:1] in ("+", "-"):
        sign = -1.0 if body[0] == "-" else 1.0
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise CallerError(f"invalid timeout value {text!r}: empty duration")

    total = 0.0
    pos = 0
    while pos < len(body):
        match = _COMPONENT.match(body, pos)
        if match is None:
            raise CallerError(f"invalid timeout value {text!r}: expected <number><unit> (units: ns, us, ms, s, m, h)")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    return sign * total
