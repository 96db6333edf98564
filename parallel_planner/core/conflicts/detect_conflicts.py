from __future__ import annotations

from parallel_planner.core.model import Task


def conflicts(a: Task, b: Task) -> bool:
    """Return True when a and b must not run in the same layer.

    Pure and symmetric. Isolation is decided only by declared metadata: two
    tasks with no overlap are independent even if they belong to the same
    feature.
    """
    if a.id == b.id:
        return False
    if a.touches & b.touches:
        return True
    if a.outputs & b.inputs or b.outputs & a.inputs:
        return True
    if _ordered(a, b) or _ordered(b, a):
        return True
    if a.cross_cutting & b.cross_cutting:
        return True
    return False


def conflict_reasons(a: Task, b: Task) -> list[str]:
    """Human-readable reasons behind conflicts(a, b), empty when independent."""
    reasons: list[str] = []
    if a.id == b.id:
        return reasons

    shared_files = sorted(a.touches & b.touches)
    if shared_files:
        reasons.append(f"both touch {', '.join(shared_files)}")

    for src, dst in ((a, b), (b, a)):
        fed = sorted(src.outputs & dst.inputs)
        if fed:
            reasons.append(f"{src.id} produces {', '.join(fed)} consumed by {dst.id}")

    for src, dst in ((a, b), (b, a)):
        if src.id in dst.explicit_after:
            reasons.append(f"{dst.id} is explicitly after {src.id}")
        if src.id in dst.requires_stable:
            reasons.append(f"{dst.id} requires {src.id} to be stable")

    shared_changes = sorted(a.cross_cutting & b.cross_cutting)
    if shared_changes:
        reasons.append(f"both part of cross-cutting change {', '.join(shared_changes)}")

    return reasons


def _ordered(first: Task, then: Task) -> bool:
    return first.id in then.explicit_after or first.id in then.requires_stable
