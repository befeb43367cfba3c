from __future__ import annotations

import os
import signal
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from external_js.bridge.errors import ExecutionError, InvocationTimeoutError, ProtocolError
from external_js.bridge.runtimes import Runtime
from external_js.bridge.wire import extract_result

_POSIX = os.name == "posix"
# Upper bound for draining output once a timed-out process group has been killed.
_DRAIN_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class Invocation:
    # Everything one child process needs; owned by a single call.
    runtime: Runtime
    entry: str
    payload_json: str
    context_json: str
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    timeout_label: str | None = None


@dataclass(frozen=True, slots=True)
class InvocationOutcome:
    result: dict[str, Any]
    output: str
    duration: float


class ProcessInvoker:
    # Spawns one guest process per call under a deadline and classifies how it ended.
    def __init__(self, *, command_for: Callable[[str], list[str]], script: str) -> None:
        self._command_for = command_for
        self._script = script

    def invoke(self, invocation: Invocation) -> InvocationOutcome:
        runtime = invocation.runtime
        label = f"{runtime.name} runtime"
        if invocation.timeout is not None and invocation.timeout <= 0:
            raise InvocationTimeoutError(
                f"{label} timed out after {self._timeout_text(invocation)} (entry={invocation.entry}): "
                "deadline expired before start"
            )

        line = runtime.build_command(
            prefix=self._command_for(runtime.name),
            script=self._script,
            entry=invocation.entry,
            payload_json=invocation.payload_json,
            context_json=invocation.context_json,
        )
        # Overrides are layered on top of the ambient environment, never replacing it.
        env = {**os.environ, **invocation.env, **line.env}
        stdin_bytes = line.stdin.encode("utf-8") if line.stdin is not None else None

        start = time.monotonic()
        try:
            process = subprocess.Popen(
                line.argv,
                stdin=subprocess.PIPE if stdin_bytes is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=env,
                start_new_session=_POSIX,
            )
        except OSError as exc:
            raise ExecutionError(
                f"failed to start {label} (entry={invocation.entry}): {exc}",
                exit_code=None,
            ) from exc

        try:
            raw, _ = process.communicate(input=stdin_bytes, timeout=invocation.timeout)
        except subprocess.TimeoutExpired as exc:
            partial = _drain_after_kill(process, exc.output)
            raise InvocationTimeoutError(
                f"{label} timed out after {self._timeout_text(invocation)} (entry={invocation.entry})",
                output=_decode(partial),
            ) from None
        except BaseException:
            _kill_process_tree(process)
            process.wait()
            raise
        duration = time.monotonic() - start
        output = _decode(raw)

        if process.returncode != 0:
            raise ExecutionError(
                f"failed to execute {runtime.name} flow (entry={invocation.entry}): exit status {process.returncode}",
                output=output,
                exit_code=process.returncode,
            )

        try:
            result = extract_result(output)
        except ProtocolError as exc:
            raise ProtocolError(
                f"{runtime.name} flow (entry={invocation.entry}) exited cleanly but broke the result protocol: "
                f"{exc.message}",
                output=output,
            ) from exc
        return InvocationOutcome(result=result, output=output, duration=duration)

    @staticmethod
    def _timeout_text(invocation: Invocation) -> str:
        if invocation.timeout_label:
            return invocation.timeout_label
        if invocation.timeout is None:
            return "deadline"
        return f"{invocation.timeout:.3f}s"


def _kill_process_tree(process: subprocess.Popen[bytes]) -> None:
    # The child leads its own session, so the group id equals its pid.
    if _POSIX:
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    try:
        process.kill()
    except ProcessLookupError:
        pass


def _drain_after_kill(process: subprocess.Popen[bytes], partial: bytes | None) -> bytes:
    _kill_process_tree(process)
    try:
        raw, _ = process.communicate(timeout=_DRAIN_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired as exc:
        # Something outside the group still holds the pipe; keep what was read.
        process.kill()
        if process.stdout is not None:
            process.stdout.close()
        process.wait()
        return exc.output or partial or b""
    return raw or partial or b""


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8", errors="replace")
