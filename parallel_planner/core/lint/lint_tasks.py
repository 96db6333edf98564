from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

from parallel_planner.core.errors import PlanValidationError


# Parallel planning lint rules:
# - L_MISSING_TOUCHES: implementation/refactor tasks must declare the files they modify
# - L_REFACTOR_WITHOUT_STABILITY: a refactor sharing files with another task should wait for it to be stable
# - L_REDUNDANT_EXPLICIT_AFTER: explicit_after already implied by a data dependency


def lint_tasks(doc: dict[str, Any]) -> list[PlanValidationError]:
    """Lint a task document.

    Lint runs *in addition to* validation. It is allowed to operate on
    partially-invalid inputs (best effort) and enforce stronger standards
    than the scheduler needs: conflict detection is metadata driven, so
    missing metadata silently weakens the plan.
    """

    file = _cast_optional_str(doc.get("__file__"))

    raw_tasks = doc.get("tasks")
    if not isinstance(raw_tasks, list):
        # Let validator handle shape.
        return []

    id_to_index: dict[str, int] = {}
    id_to_raw: dict[str, dict[str, Any]] = {}
    for i, raw in enumerate(raw_tasks):
        if not isinstance(raw, dict):
            continue
        tid = raw.get("id")
        if not isinstance(tid, str):
            continue
        id_to_index.setdefault(tid, i)
        id_to_raw.setdefault(tid, raw)

    errors: list[PlanValidationError] = []

    touches = {tid: set(_str_list(raw.get("touches"))) for tid, raw in id_to_raw.items()}

    # Rule: implementation/refactor tasks must declare touches
    for tid, raw in id_to_raw.items():
        kind = raw.get("kind", "implementation")
        if kind not in {"implementation", "refactor"}:
            continue
        if not touches[tid]:
            errors.append(
                PlanValidationError(
                    code="L_MISSING_TOUCHES",
                    message=f"{kind} task declares no touches; isolation cannot be verified",
                    file=file,
                    path=f"tasks[{id_to_index[tid]}].touches",
                )
            )

    # Rule: refactors sharing files should require the other task stable
    for tid, raw in id_to_raw.items():
        if raw.get("kind") != "refactor":
            continue
        stable = set(_str_list(raw.get("requires_stable")))
        for other in sorted(id_to_raw):
            if other == tid or other in stable:
                continue
            shared = touches[tid] & touches[other]
            if shared:
                errors.append(
                    PlanValidationError(
                        code="L_REFACTOR_WITHOUT_STABILITY",
                        message=(
                            f"refactor shares {', '.join(sorted(shared))} with {other} "
                            f"but does not require it stable"
                        ),
                        file=file,
                        path=f"tasks[{id_to_index[tid]}].requires_stable",
                    )
                )

    # Rule: explicit_after already implied by inputs/outputs
    producers: dict[str, set[str]] = defaultdict(set)
    for tid, raw in id_to_raw.items():
        for artifact in _str_list(raw.get("outputs")):
            producers[artifact].add(tid)

    for tid, raw in id_to_raw.items():
        data_deps: set[str] = set()
        for artifact in _str_list(raw.get("inputs")):
            data_deps |= producers.get(artifact, set())
        for dep in sorted(set(_str_list(raw.get("explicit_after"))) & data_deps):
            errors.append(
                PlanValidationError(
                    code="L_REDUNDANT_EXPLICIT_AFTER",
                    message=f"explicit_after {dep} is already implied by a data dependency",
                    file=file,
                    path=f"tasks[{id_to_index[tid]}].explicit_after",
                )
            )

    return _sorted(errors)


def _str_list(v: Any) -> list[str]:
    if not isinstance(v, list):
        return []
    return [x for x in v if isinstance(x, str)]


def _sorted(errors: list[PlanValidationError]) -> list[PlanValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code, e.message))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
