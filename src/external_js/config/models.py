from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from external_js.bridge.runtimes import DEFAULT_RUNTIME, RUNTIMES

# Config models map the YAML bridge config to typed structures.


class RuntimeCommandConfig(BaseModel):
    # Executable prefix used to launch a runtime, e.g. ["node"] or ["/opt/bun/bin/bun"].
    model_config = ConfigDict(extra="forbid")
    command: list[str] = Field(min_length=1)

    @field_validator("command")
    @classmethod
    def _non_empty_parts(cls, value: list[str]) -> list[str]:
        if not all(isinstance(part, str) and part for part in value):
            raise ValueError("command entries must be non-empty strings")
        return value


def _default_runtimes() -> dict[str, RuntimeCommandConfig]:
    return {name: RuntimeCommandConfig(command=[runtime.executable]) for name, runtime in RUNTIMES.items()}


class MetricNamesConfig(BaseModel):
    # Names of the metrics the bridge itself registers.
    model_config = ConfigDict(extra="forbid")
    duration: str = "js_duration"
    invocations: str = "js_invocations"
    checks: str = "checks"


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    level: Literal["debug", "info", "warning", "error"] = "info"
    sink: Literal["stderr", "jsonl"] = "stderr"
    path: str | None = None

    @model_validator(mode="after")
    def _require_path(self) -> LoggingConfig:
        # For jsonl sink, a path is required to avoid silent defaults.
        if self.sink == "jsonl" and not self.path:
            raise ValueError("logging.path is required when sink is 'jsonl'")
        return self


class BridgeConfig(BaseModel):
    # Top-level typed view of bridge configuration; every section is optional.
    model_config = ConfigDict(extra="forbid")
    default_runtime: str = DEFAULT_RUNTIME
    runtimes: dict[str, RuntimeCommandConfig] = Field(default_factory=_default_runtimes)
    metrics: MetricNamesConfig = Field(default_factory=MetricNamesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("default_runtime")
    @classmethod
    def _known_default(cls, value: str) -> str:
        if value not in RUNTIMES:
            raise ValueError(f"default_runtime must be one of: {sorted(RUNTIMES)}")
        return value

    @field_validator("runtimes")
    @classmethod
    def _merge_runtimes(cls, value: dict[str, RuntimeCommandConfig]) -> dict[str, RuntimeCommandConfig]:
        # Partial overrides keep defaults for runtimes that are not mentioned.
        unknown = sorted(name for name in value if name not in RUNTIMES)
        if unknown:
            raise ValueError(f"runtimes contains unsupported entries {unknown} (supported: {sorted(RUNTIMES)})")
        merged = _default_runtimes()
        merged.update(value)
        return merged

    def command_for(self, runtime: str) -> list[str]:
        return list(self.runtimes[runtime].command)
