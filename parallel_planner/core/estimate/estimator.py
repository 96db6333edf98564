from __future__ import annotations

import logging
from typing import Optional

from parallel_planner.core.model import DependencyGraph, Estimate, Layer

logger = logging.getLogger(__name__)


def estimate(layers: list[Layer], graph: DependencyGraph) -> Estimate:
    """Wall-clock estimate for a layered schedule.

    A layer lasts as long as its longest task; layers run back to back. No
    speed-up or slow-down is modelled for tasks sharing a layer.
    """
    durations = {tid: t.estimated_duration for tid, t in graph.tasks_by_id.items()}

    sequential_total = sum(durations[tid] for layer in layers for tid in layer.task_ids)
    parallel_total = sum(layer_duration(layer, graph) for layer in layers)

    if sequential_total == 0:
        savings = 0.0
    else:
        savings = (sequential_total - parallel_total) / sequential_total * 100

    path, path_duration = critical_path(layers, graph)
    logger.info(
        "Estimate: parallel=%s sequential=%s savings=%.1f%%",
        parallel_total,
        sequential_total,
        savings,
    )
    return Estimate(
        parallel_total=parallel_total,
        sequential_total=sequential_total,
        savings_percent=savings,
        critical_path=tuple(path),
        critical_path_duration=path_duration,
    )


def layer_duration(layer: Layer, graph: DependencyGraph) -> float:
    if not layer.task_ids:
        return 0
    return max(graph.tasks_by_id[tid].estimated_duration for tid in layer.task_ids)


def critical_path(layers: list[Layer], graph: DependencyGraph) -> tuple[list[str], float]:
    """Longest duration-weighted dependency chain.

    Layers are already in topological order, so a single forward pass is
    enough. No schedule can finish faster than this chain.
    """
    best: dict[str, tuple[float, Optional[str]]] = {}
    for layer in layers:
        for tid in layer.task_ids:
            own = graph.tasks_by_id[tid].estimated_duration
            length, prev = own, None
            for pred in graph.predecessors(tid):
                if pred in best and best[pred][0] + own > length:
                    length, prev = best[pred][0] + own, pred
            best[tid] = (length, prev)

    if not best:
        return [], 0

    end = max(sorted(best), key=lambda tid: best[tid][0])
    path: list[str] = []
    cur: Optional[str] = end
    while cur is not None:
        path.append(cur)
        cur = best[cur][1]
    path.reverse()
    return path, best[end][0]
