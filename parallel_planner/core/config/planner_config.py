from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class PlannerConfig:
    # Split a layer that mixes stability-gated and ungated tasks.
    split_gated_layers: bool = True
    savings_precision: int = 1
    # Risk flags for same-layer pairs that share module context.
    flag_shared_directory: bool = True
    flag_shared_inputs: bool = True
    duration_unit: str = "h"


DEFAULT_CONFIG = PlannerConfig()


class ConfigError(ValueError):
    pass


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load planner settings from a YAML file.

    Format:
      split_gated_layers: true
      savings_precision: 1
      ...

    Returns a mapping of setting name -> value, checked against PlannerConfig.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(f"invalid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping of setting -> value")

    known = {f.name: f for f in fields(PlannerConfig)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise ConfigError(f"unknown setting '{k}' (choose from: {', '.join(sorted(known))})")
        expected = type(getattr(DEFAULT_CONFIG, k))
        # bool is an int subclass; keep them apart.
        if isinstance(v, bool) != (expected is bool) or not isinstance(v, expected):
            raise ConfigError(f"setting '{k}' must be of type {expected.__name__}")
        out[k] = v

    if out.get("savings_precision", 0) < 0:
        raise ConfigError("setting 'savings_precision' must be >= 0")
    return out


def merged_config(overrides: dict[str, Any] | None = None) -> PlannerConfig:
    """Return DEFAULT_CONFIG with optional overrides applied."""
    if not overrides:
        return DEFAULT_CONFIG
    return replace(DEFAULT_CONFIG, **overrides)


def load_and_merge(config_file: str | None) -> PlannerConfig:
    if not config_file:
        return merged_config()
    return merged_config(load_config_file(config_file))
