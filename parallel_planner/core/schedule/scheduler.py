"""Layered topological scheduling.

Each layer is a maximal set of mutually non-conflicting tasks whose
predecessors all sit in earlier layers. Layers run sequentially; tasks inside
a layer may run in parallel.
"""
from __future__ import annotations

import logging

from parallel_planner.core.conflicts.detect_conflicts import conflicts
from parallel_planner.core.model import DependencyGraph, Layer, Task

logger = logging.getLogger(__name__)


def tie_break_key(task: Task) -> tuple[float, str]:
    # Shorter tasks first, then lexicographic id.
    return (task.estimated_duration, task.id)


def schedule(graph: DependencyGraph) -> list[Layer]:
    """Iterative layered topological sort over an acyclic graph.

    Candidates for a layer are the unscheduled tasks whose incoming edges all
    originate in already-scheduled layers. They are taken in tie-break order
    and added greedily unless they conflict with a task already placed in the
    layer; excluded candidates roll over to the next layer.
    """

    tasks = graph.tasks_by_id
    preds: dict[str, set[str]] = {tid: set() for tid in tasks}
    for (src, dst) in graph.edges:
        preds[dst].add(src)

    scheduled: set[str] = set()
    remaining: set[str] = set(tasks)
    layers: list[Layer] = []

    while remaining:
        candidates = sorted(
            (tasks[tid] for tid in remaining if preds[tid] <= scheduled),
            key=tie_break_key,
        )
        if not candidates:
            # Unreachable for graphs produced by build_graph.
            raise RuntimeError(f"no schedulable task among {sorted(remaining)}")

        placed: list[Task] = []
        deferred: list[str] = []
        for cand in candidates:
            if any(conflicts(cand, other) for other in placed):
                deferred.append(cand.id)
                continue
            placed.append(cand)

        if deferred:
            logger.debug("Layer %d deferred by conflict: %s", len(layers), deferred)

        layer_ids = tuple(t.id for t in placed)
        layers.append(Layer(index=len(layers), task_ids=layer_ids))
        scheduled.update(layer_ids)
        remaining.difference_update(layer_ids)

    logger.info(
        "Scheduled %d tasks into %d layers (sizes: %s)",
        len(tasks),
        len(layers),
        [len(layer.task_ids) for layer in layers],
    )
    return layers
