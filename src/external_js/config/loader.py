from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from external_js.config.errors import ConfigError
from external_js.config.models import BridgeConfig

CONFIG_ENV_VAR = "EXTERNAL_JS_CONFIG"


def load_yaml_config(path: Path) -> dict[str, object]:
    # Raw YAML mapping; typed validation happens in load_config.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def parse_config(raw: dict[str, object]) -> BridgeConfig:
    try:
        return BridgeConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid bridge config: {exc}") from exc


def load_config(path: Path | None = None) -> BridgeConfig:
    # Explicit path first, then EXTERNAL_JS_CONFIG, else built-in defaults.
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return BridgeConfig()
        path = Path(env_path)
    return parse_config(load_yaml_config(path))
