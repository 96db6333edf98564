from __future__ import annotations

import math
from typing import Any, Iterable, Optional, cast

from parallel_planner.core.errors import PlanValidationError
from parallel_planner.core.model import Task, TaskKind, TaskSet


ALLOWED_KINDS: set[str] = {"implementation", "refactor", "analysis", "documentation", "verification"}

SET_FIELDS: tuple[str, ...] = (
    "inputs",
    "outputs",
    "touches",
    "explicit_after",
    "requires_stable",
    "cross_cutting",
)


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_tasks(doc: dict[str, Any]) -> tuple[Optional[TaskSet], list[PlanValidationError]]:
    """Validate the shape of a loaded task document.

    Returns (task_set, errors). task_set is None when errors exist.

    Only field shapes are checked here. Duplicate ids, dangling references and
    cycles are configuration errors raised by the graph builder.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[PlanValidationError] = []

    schema_version = doc.get("schema_version")
    if schema_version is not None and not isinstance(schema_version, str):
        errors.append(
            PlanValidationError(
                code="E_INVALID_TYPE",
                message="schema_version must be a string",
                file=file,
                path="schema_version",
            )
        )

    external_inputs = doc.get("external_inputs")
    if external_inputs is None:
        external_inputs = []
    if not _is_list_of_str(external_inputs):
        errors.append(
            PlanValidationError(
                code="E_INVALID_TYPE",
                message="external_inputs must be an array of strings",
                file=file,
                path="external_inputs",
            )
        )
        external_inputs = []

    raw_tasks = doc.get("tasks")
    if not isinstance(raw_tasks, list):
        errors.append(
            PlanValidationError(
                code="E_REQUIRED_FIELD",
                message="tasks is required and must be an array",
                file=file,
                path="tasks",
            )
        )
        return None, _sorted(errors)

    tasks: list[Task] = []
    for i, raw in enumerate(raw_tasks):
        task, task_errors = _validate_task(raw, f"tasks[{i}]", file)
        errors.extend(task_errors)
        if task is not None:
            tasks.append(task)

    if errors:
        return None, _sorted(errors)

    return (
        TaskSet(
            tasks=tasks,
            external_inputs=frozenset(cast(list[str], external_inputs)),
            schema_version=cast(Optional[str], schema_version),
            file=file,
        ),
        [],
    )


def _validate_task(
    raw: Any, task_path: str, file: Optional[str]
) -> tuple[Optional[Task], list[PlanValidationError]]:
    if not isinstance(raw, dict):
        return None, [
            PlanValidationError(
                code="E_INVALID_TYPE",
                message="task must be an object",
                file=file,
                path=task_path,
            )
        ]

    errors: list[PlanValidationError] = []

    tid = raw.get("id")
    if not isinstance(tid, str) or not tid.strip():
        errors.append(
            PlanValidationError(
                code="E_REQUIRED_FIELD",
                message="id is required and must be a non-empty string",
                file=file,
                path=f"{task_path}.id",
            )
        )

    duration = raw.get("estimated_duration")
    if duration is None:
        errors.append(
            PlanValidationError(
                code="E_REQUIRED_FIELD",
                message="estimated_duration is required",
                file=file,
                path=f"{task_path}.estimated_duration",
            )
        )
    elif not _is_number(duration):
        errors.append(
            PlanValidationError(
                code="E_INVALID_TYPE",
                message="estimated_duration must be a number",
                file=file,
                path=f"{task_path}.estimated_duration",
            )
        )
    elif not math.isfinite(duration) or duration <= 0:
        errors.append(
            PlanValidationError(
                code="E_INVALID_VALUE",
                message=f"estimated_duration must be a positive finite number, got {duration}",
                file=file,
                path=f"{task_path}.estimated_duration",
            )
        )

    sets: dict[str, frozenset[str]] = {}
    for name in SET_FIELDS:
        value = raw.get(name)
        if value is None:
            sets[name] = frozenset()
            continue
        if not _is_list_of_str(value):
            errors.append(
                PlanValidationError(
                    code="E_INVALID_TYPE",
                    message=f"{name} must be an array of strings",
                    file=file,
                    path=f"{task_path}.{name}",
                )
            )
            continue
        sets[name] = frozenset(value)

    kind = raw.get("kind", "implementation")
    if not isinstance(kind, str) or kind not in ALLOWED_KINDS:
        errors.append(
            PlanValidationError(
                code="E_INVALID_ENUM",
                message=f"kind must be one of {sorted(ALLOWED_KINDS)}",
                file=file,
                path=f"{task_path}.kind",
            )
        )

    title = raw.get("title")
    if title is not None and not isinstance(title, str):
        errors.append(
            PlanValidationError(
                code="E_INVALID_TYPE",
                message="title must be a string",
                file=file,
                path=f"{task_path}.title",
            )
        )

    if errors:
        return None, errors

    return (
        Task(
            id=cast(str, tid),
            estimated_duration=cast(float, duration),
            inputs=sets["inputs"],
            outputs=sets["outputs"],
            touches=sets["touches"],
            explicit_after=sets["explicit_after"],
            requires_stable=sets["requires_stable"],
            kind=cast(TaskKind, kind),
            cross_cutting=sets["cross_cutting"],
            title=cast(Optional[str], title),
        ),
        [],
    )


def _sorted(errors: Iterable[PlanValidationError]) -> list[PlanValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
