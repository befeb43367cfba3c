from __future__ import annotations


class ConfigError(ValueError):
    # Raised for invalid bridge config (fail fast).
    pass
