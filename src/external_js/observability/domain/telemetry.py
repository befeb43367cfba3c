from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from external_js.host.metrics import Metric


@dataclass(frozen=True, slots=True)
class Sample:
    # One observation pushed into the host metrics pipeline.
    metric: Metric
    value: float
    tags: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        if not isinstance(self.value, float):
            raise ValueError("Sample.value must be a float")
