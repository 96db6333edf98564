from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional

from parallel_planner.core.errors import (
    CyclicDependencyError,
    DuplicateTaskIdError,
    UnknownDependencyReferenceError,
)
from parallel_planner.core.model import EDGE_REASONS, DependencyGraph, Edge, EdgeReason, Task

logger = logging.getLogger(__name__)


def build_graph(
    tasks: Iterable[Task],
    *,
    external_inputs: Iterable[str] = (),
    file: Optional[str] = None,
) -> DependencyGraph:
    """Build the dependency graph over tasks.

    Edge A -> B is added when B consumes an output of A (data_dependency),
    lists A in explicit_after, or lists A in requires_stable
    (stability_barrier). Labels for the same pair are merged.

    Fails fast with DuplicateTaskIdError, UnknownDependencyReferenceError or
    CyclicDependencyError; never returns a partial graph.
    """

    task_list = list(tasks)
    available = frozenset(external_inputs)

    tasks_by_id: dict[str, Task] = {}
    index_of: dict[str, int] = {}
    for i, task in enumerate(task_list):
        if task.id in tasks_by_id:
            raise DuplicateTaskIdError(
                code="E_DUPLICATE_ID",
                message=f"duplicate task id: {task.id}",
                file=file,
                path=f"tasks[{i}].id",
                task_id=task.id,
            )
        tasks_by_id[task.id] = task
        index_of[task.id] = i

    producers: dict[str, list[str]] = defaultdict(list)
    for task in task_list:
        for artifact in task.outputs:
            producers[artifact].append(task.id)

    _check_references(task_list, tasks_by_id, producers, available, file)

    labels: dict[tuple[str, str], set[EdgeReason]] = defaultdict(set)
    artifacts: dict[tuple[str, str], set[str]] = defaultdict(set)

    for b in task_list:
        for artifact in b.inputs:
            for a_id in producers.get(artifact, []):
                labels[(a_id, b.id)].add("data_dependency")
                artifacts[(a_id, b.id)].add(artifact)
        for a_id in b.explicit_after:
            labels[(a_id, b.id)].add("explicit_after")
        for a_id in b.requires_stable:
            labels[(a_id, b.id)].add("stability_barrier")

    for (src, dst) in sorted(labels):
        if src == dst:
            raise CyclicDependencyError(
                code="E_CYCLE",
                message=f"dependency cycle detected: {src} -> {src}",
                file=file,
                path=f"tasks[{index_of[src]}]",
                cycle=(src, src),
            )

    edges: dict[tuple[str, str], Edge] = {}
    for key in sorted(labels):
        src, dst = key
        edges[key] = Edge(
            source=src,
            target=dst,
            reasons=tuple(r for r in EDGE_REASONS if r in labels[key]),
            artifacts=tuple(sorted(artifacts.get(key, set()))),
        )

    cycle = _find_cycle(sorted(tasks_by_id), edges)
    if cycle:
        raise CyclicDependencyError(
            code="E_CYCLE",
            message="dependency cycle detected: " + " -> ".join(cycle),
            file=file,
            path=f"tasks[{index_of[cycle[0]]}]",
            cycle=tuple(cycle),
        )

    logger.info("Built dependency graph: %d tasks, %d edges", len(tasks_by_id), len(edges))
    return DependencyGraph(tasks_by_id=tasks_by_id, edges=edges, external_inputs=available)


def summarize_graph(graph: DependencyGraph) -> str:
    counts = {reason: len(graph.edges_with(reason)) for reason in EDGE_REASONS}
    parts = [f"{r}={counts[r]}" for r in EDGE_REASONS]
    return (
        f"OK: {len(graph.tasks_by_id)} tasks, {len(graph.edges)} edges ("
        + ", ".join(parts)
        + ")"
    )


def _check_references(
    task_list: list[Task],
    tasks_by_id: dict[str, Task],
    producers: dict[str, list[str]],
    available: frozenset[str],
    file: Optional[str],
) -> None:
    for i, task in enumerate(task_list):
        for field_name, refs in (
            ("explicit_after", task.explicit_after),
            ("requires_stable", task.requires_stable),
        ):
            for ref in sorted(refs):
                if ref not in tasks_by_id:
                    raise UnknownDependencyReferenceError(
                        code="E_UNKNOWN_REFERENCE",
                        message=f"{field_name} references unknown task id: {ref}",
                        file=file,
                        path=f"tasks[{i}].{field_name}",
                        task_id=task.id,
                        reference=ref,
                    )
        for artifact in sorted(task.inputs):
            if artifact not in producers and artifact not in available:
                raise UnknownDependencyReferenceError(
                    code="E_UNKNOWN_REFERENCE",
                    message=f"inputs references artifact no task produces: {artifact}",
                    file=file,
                    path=f"tasks[{i}].inputs",
                    task_id=task.id,
                    reference=artifact,
                )


def _find_cycle(ids: list[str], edges: dict[tuple[str, str], Edge]) -> list[str]:
    """Depth-first search with a recursion stack; returns the first cycle found."""
    successors: dict[str, list[str]] = defaultdict(list)
    for (src, dst) in sorted(edges):
        successors[src].append(dst)

    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {tid: WHITE for tid in ids}
    stack: list[str] = []

    def dfs(u: str) -> list[str]:
        state[u] = GRAY
        stack.append(u)
        for v in successors.get(u, []):
            if state[v] == GRAY:
                # cycle: v ... u -> v
                return stack[stack.index(v):] + [v]
            if state[v] == WHITE:
                found = dfs(v)
                if found:
                    return found
        stack.pop()
        state[u] = BLACK
        return []

    for tid in ids:
        if state[tid] == WHITE:
            found = dfs(tid)
            if found:
                return found
    return []
