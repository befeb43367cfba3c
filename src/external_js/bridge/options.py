from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from external_js.bridge.errors import CallerError

# Presence of any of these keys turns a mapping argument into an options object.
OPTION_KEYS = frozenset({"payload", "env", "timeout", "runtime", "entry"})


class RunOptions(BaseModel):
    # Typed view of the advanced call shape: run(entry, {payload, env, timeout, runtime, entry}).
    # Without a payload key the whole mapping is sent as the payload.
    model_config = ConfigDict(extra="ignore", strict=True)
    payload: Any = None
    env: dict[str, str] = Field(default_factory=dict)
    timeout: str | None = None
    runtime: str | None = None
    entry: str | None = None


@dataclass(frozen=True, slots=True)
class RunRequest:
    # Canonical request produced from either call shape.
    entry: str
    payload: Any
    runtime: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    timeout: str | None = None


def is_options_object(arg: object) -> bool:
    # Key presence decides; values are never inspected.
    return isinstance(arg, dict) and any(key in arg for key in OPTION_KEYS)


def interpret_arguments(entry: str, arg: object) -> RunRequest:
    if not isinstance(entry, str) or not entry:
        raise CallerError("entry must be a non-empty string")
    if not is_options_object(arg):
        return RunRequest(entry=entry, payload=arg)

    try:
        options = RunOptions.model_validate(arg)
    except ValidationError as exc:
        raise CallerError(f"invalid run options: {_describe(exc)}") from exc

    return RunRequest(
        entry=options.entry or entry,
        payload=options.payload if "payload" in arg else arg,
        runtime=options.runtime or None,
        env=dict(options.env),
        timeout=options.timeout or None,
    )


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location or '<root>'}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)
