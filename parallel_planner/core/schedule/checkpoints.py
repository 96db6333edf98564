"""Checkpoint insertion for stability barriers.

A topological sort only knows "completed". A stability_barrier edge A -> B
additionally needs an external "A is stable" signal before B may start, so a
checkpoint is attached to B's layer. The only exception is a B that already
depends on A through another task (a chain of data_dependency or
explicit_after edges A -> X -> ... -> B); then no checkpoint is added.
"""
from __future__ import annotations

import logging
from collections import defaultdict

from parallel_planner.core.model import Checkpoint, DependencyGraph, Layer

logger = logging.getLogger(__name__)

# Edge labels that order tasks without asking for stability.
ORDERING_REASONS = ("data_dependency", "explicit_after")


def insert_checkpoints(
    layers: list[Layer],
    graph: DependencyGraph,
    *,
    split_gated_layers: bool = True,
) -> list[Layer]:
    """Return a new layer list with checkpoints attached to gated layers.

    A checkpoint always sits right before the gated task's layer, however
    many layers separate it from the gating task. With split_gated_layers, a
    layer that mixes gated and ungated tasks is split in two: the ungated
    tasks run right after the previous layer, the gated ones only after the
    checkpoint. Later layers are re-indexed.
    """

    out: list[Layer] = []
    for layer in layers:
        gated_by_source: dict[str, list[str]] = defaultdict(list)
        for tid in layer.task_ids:
            for edge in graph.incoming(tid):
                if "stability_barrier" not in edge.reasons:
                    continue
                if _ordered_through_other_task(graph, edge.source, tid):
                    continue
                gated_by_source[edge.source].append(tid)

        if not gated_by_source:
            out.append(Layer(index=len(out), task_ids=layer.task_ids, gated_by=layer.gated_by))
            continue

        gated = {tid for tids in gated_by_source.values() for tid in tids}
        ungated = tuple(tid for tid in layer.task_ids if tid not in gated)

        if ungated and split_gated_layers:
            out.append(Layer(index=len(out), task_ids=ungated))
            gated_ids = tuple(tid for tid in layer.task_ids if tid in gated)
        else:
            gated_ids = layer.task_ids

        after_layer = len(out) - 1
        checkpoints = tuple(
            Checkpoint(
                after_layer=after_layer,
                gating_task=source,
                gated_tasks=tuple(sorted(targets)),
                rationale=_rationale(graph, source, sorted(targets)),
            )
            for source, targets in sorted(gated_by_source.items())
        )
        out.append(
            Layer(index=len(out), task_ids=gated_ids, gated_by=layer.gated_by + checkpoints)
        )

    inserted = sum(len(layer.gated_by) for layer in out)
    if inserted:
        logger.info("Inserted %d checkpoint(s); %d -> %d layers", inserted, len(layers), len(out))
    return out


def _ordered_through_other_task(graph: DependencyGraph, source: str, target: str) -> bool:
    """True when target is reachable from source via at least one intermediate task."""

    def ordering_successors(tid: str) -> list[str]:
        return [
            dst
            for dst in graph.successors(tid)
            if any(r in ORDERING_REASONS for r in graph.edges[(tid, dst)].reasons)
        ]

    seen: set[str] = set()
    frontier = [tid for tid in ordering_successors(source) if tid != target]
    while frontier:
        cur = frontier.pop()
        if cur in seen:
            continue
        seen.add(cur)
        for nxt in ordering_successors(cur):
            if nxt == target:
                return True
            frontier.append(nxt)
    return False


def _rationale(graph: DependencyGraph, source: str, targets: list[str]) -> str:
    parts = [f"{graph.tasks_by_id[t].kind} {t}" for t in targets]
    verb = "proceeds" if len(parts) == 1 else "proceed"
    return f"{source} must be stable before {' and '.join(parts)} {verb}"
