from __future__ import annotations

import time
from dataclasses import dataclass, field

from external_js.host.metrics import SampleSink


@dataclass(slots=True)
class ExecutionUnit:
    # Calling execution unit (virtual user): identity, ambient tags/env and its sample channel.
    id: int = 0
    iteration: int = 0
    scenario: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    samples: SampleSink | None = None
    # Monotonic deadline bounding every call made by this unit (None = no ambient limit).
    deadline: float | None = None

    def identity_tags(self) -> dict[str, str]:
        # Ambient tags always carry the unit identity; explicit tags win over derived ones.
        identity = {"vu": str(self.id), "iter": str(self.iteration)}
        if self.scenario:
            identity["scenario"] = self.scenario
        return {**identity, **self.tags}

    def execution_context(self) -> dict[str, object]:
        # Built fresh per call; the guest only ever reads it.
        return {
            "vu": {"id": self.id, "iteration": self.iteration, "scenario": self.scenario},
            "env": dict(self.env),
        }

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def next_iteration(self) -> None:
        self.iteration += 1
