from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional


TaskKind = Literal["implementation", "refactor", "analysis", "documentation", "verification"]
EdgeReason = Literal["data_dependency", "explicit_after", "stability_barrier"]

# Order in which edge labels are applied and reported.
EDGE_REASONS: tuple[EdgeReason, ...] = ("data_dependency", "explicit_after", "stability_barrier")


class TaskState(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STABLE = "stable"


@dataclass(frozen=True)
class Task:
    id: str
    estimated_duration: float
    inputs: frozenset[str] = frozenset()
    outputs: frozenset[str] = frozenset()
    touches: frozenset[str] = frozenset()
    explicit_after: frozenset[str] = frozenset()
    requires_stable: frozenset[str] = frozenset()
    kind: TaskKind = "implementation"

    cross_cutting: frozenset[str] = frozenset()
    title: Optional[str] = None


@dataclass(frozen=True)
class TaskSet:
    tasks: list[Task]
    external_inputs: frozenset[str] = frozenset()
    schema_version: Optional[str] = None
    file: Optional[str] = None


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    reasons: tuple[EdgeReason, ...]
    artifacts: tuple[str, ...] = ()  # shared artifacts for data_dependency

    def describe(self) -> str:
        text = f"{self.source} -> {self.target} [{', '.join(self.reasons)}]"
        if self.artifacts:
            text += f" via {', '.join(self.artifacts)}"
        return text


@dataclass(frozen=True)
class DependencyGraph:
    tasks_by_id: dict[str, Task]
    edges: dict[tuple[str, str], Edge]  # (source, target) -> edge
    external_inputs: frozenset[str] = frozenset()

    def predecessors(self, task_id: str) -> list[str]:
        return sorted(src for (src, dst) in self.edges if dst == task_id)

    def successors(self, task_id: str) -> list[str]:
        return sorted(dst for (src, dst) in self.edges if src == task_id)

    def incoming(self, task_id: str) -> list[Edge]:
        return [e for (src, dst), e in sorted(self.edges.items()) if dst == task_id]

    def edges_with(self, reason: EdgeReason) -> list[Edge]:
        return [e for _, e in sorted(self.edges.items()) if reason in e.reasons]


@dataclass(frozen=True)
class Checkpoint:
    after_layer: int
    gating_task: str
    gated_tasks: tuple[str, ...]
    rationale: str


@dataclass(frozen=True)
class Layer:
    index: int
    task_ids: tuple[str, ...]
    # Checkpoints that must clear (gating task Stable) before this layer starts.
    gated_by: tuple[Checkpoint, ...] = ()


@dataclass(frozen=True)
class Estimate:
    parallel_total: float
    sequential_total: float
    savings_percent: float
    critical_path: tuple[str, ...] = ()
    critical_path_duration: float = 0


@dataclass(frozen=True)
class ExecutionPlan:
    layers: tuple[Layer, ...]
    graph: DependencyGraph
    estimate: Estimate
    schema_version: Optional[str] = None

    # Lookup only; never mutated after construction.
    layer_of: dict[str, int] = field(default_factory=dict, compare=False)

    @property
    def checkpoints(self) -> list[Checkpoint]:
        return [cp for layer in self.layers for cp in layer.gated_by]

    @property
    def task_count(self) -> int:
        return sum(len(layer.task_ids) for layer in self.layers)
