from __future__ import annotations


class BridgeError(RuntimeError):
    # Base error for a single bridge call; carries captured child output when available.
    kind = "bridge"

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.output = output

    def __str__(self) -> str:
        if not self.output:
            return self.message
        return f"{self.message}\nOutput: {self.output}"


class CallerError(BridgeError, ValueError):
    # Malformed options, unserializable payload, bad timeout or unknown runtime (no process spawned).
    kind = "caller"


class InvocationTimeoutError(BridgeError):
    # Deadline expired; the child process group was killed.
    kind = "timeout"


class ExecutionError(BridgeError):
    # Child failed to launch or exited non-zero.
    kind = "execution"

    def __init__(self, message: str, *, output: str = "", exit_code: int | None = None) -> None:
        super().__init__(message, output=output)
        self.exit_code = exit_code


class ProtocolError(BridgeError):
    # Child exited cleanly but the delimited result could not be located or parsed.
    kind = "protocol"
