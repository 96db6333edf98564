from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from parallel_planner.core.errors import PlanLoadError


def load_tasks(path: str) -> dict[str, Any]:
    """Load a YAML/JSON task file.

    Accepts either a top-level array of task objects or a mapping with a
    ``tasks`` array (plus optional ``schema_version`` and ``external_inputs``).

    Returns a dict with keys: schema_version, tasks, external_inputs.
    Does not coerce types; validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise PlanLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PlanLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise PlanLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except (yaml.YAMLError, ValueError) as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise PlanLoadError(code=code, message=str(e), file=str(p)) from e

    if isinstance(data, list):
        data = {"tasks": data}

    if not isinstance(data, dict):
        raise PlanLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be an array of tasks or a mapping with 'tasks'",
            file=str(p),
        )

    # Normalize: keep only expected keys; validator checks required ones.
    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "tasks": data.get("tasks"),
        "external_inputs": data.get("external_inputs", []),
    }

    normalized["__file__"] = str(p)
    return normalized
