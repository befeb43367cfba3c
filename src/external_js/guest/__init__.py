from __future__ import annotations

from functools import lru_cache
from importlib import resources

RUNNER_RESOURCE = "runner.js"


@lru_cache(maxsize=1)
def load_runner_script() -> str:
    # Guest runner source shipped as package data; identical for every runtime.
    return resources.files(__name__).joinpath(RUNNER_RESOURCE).read_text(encoding="utf-8")
