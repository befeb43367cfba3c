from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Literal

from external_js.bridge.errors import CallerError

ScriptDelivery = Literal["inline", "stdin"]
ModuleResolution = Literal["path", "identifier"]

# Environment channel mirrored for runtimes that read the runner script from stdin.
ENV_ENTRY = "EXTERNAL_JS_ENTRY"
ENV_PAYLOAD = "EXTERNAL_JS_PAYLOAD"
ENV_CONTEXT = "EXTERNAL_JS_CONTEXT"


@dataclass(frozen=True, slots=True)
class CommandLine:
    # Fully built child invocation: argv, optional stdin text and extra environment.
    argv: list[str]
    stdin: str | None
    env: dict[str, str]


@dataclass(frozen=True, slots=True)
class Runtime:
    # One supported guest runtime; adding a runtime means adding one instance to RUNTIMES.
    name: str
    executable: str
    delivery: ScriptDelivery
    resolution: ModuleResolution
    run_args: tuple[str, ...] = ()

    def build_command(
        self,
        *,
        prefix: list[str],
        script: str,
        entry: str,
        payload_json: str,
        context_json: str,
    ) -> CommandLine:
        positional = [entry, payload_json, context_json]
        if self.delivery == "inline":
            return CommandLine(argv=[*prefix, *self.run_args, script, *positional], stdin=None, env={})
        return CommandLine(
            argv=[*prefix, *self.run_args, *positional],
            stdin=script,
            env={ENV_ENTRY: entry, ENV_PAYLOAD: payload_json, ENV_CONTEXT: context_json},
        )


NODE = Runtime(name="node", executable="node", delivery="inline", resolution="path", run_args=("-e",))
DENO = Runtime(
    name="deno",
    executable="deno",
    delivery="stdin",
    resolution="identifier",
    run_args=("run", "--allow-all", "-"),
)
BUN = Runtime(name="bun", executable="bun", delivery="inline", resolution="path", run_args=("-e",))

RUNTIMES: dict[str, Runtime] = {runtime.name: runtime for runtime in (NODE, DENO, BUN)}
DEFAULT_RUNTIME = NODE.name

_SUFFIX_EXTENSIONS = ("js", "mjs", "cjs", "ts", "mts", "cts")
_SUFFIX = re.compile(
    r"\.(" + "|".join(RUNTIMES) + r")\.(" + "|".join(_SUFFIX_EXTENSIONS) + r")$"
)


def supported_runtimes() -> list[str]:
    return sorted(RUNTIMES)


def get_runtime(name: str) -> Runtime:
    runtime = RUNTIMES.get(name)
    if runtime is None:
        raise CallerError(f"unsupported runtime {name!r} (supported: {', '.join(supported_runtimes())})")
    return runtime


def runtime_from_entry(entry: str) -> str | None:
    # "lib.deno.ts" -> "deno"; anything else falls through.
    match = _SUFFIX.search(PurePath(entry).name)
    if match is None:
        return None
    return match.group(1)


def select_runtime(entry: str, explicit: str | None = None, default: str = DEFAULT_RUNTIME) -> Runtime:
    # Precedence: explicit option, filename tag, configured default.
    if explicit:
        return get_runtime(explicit)
    tagged = runtime_from_entry(entry)
    if tagged is not None:
        return RUNTIMES[tagged]
    return get_runtime(default)
