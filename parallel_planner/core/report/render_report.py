"""Report rendering for execution plans.

The report carries the schedule, the dependency rationale for each task's
position, a per-task classification, risk flags for same-layer pairs that
share module context, and the time-savings estimate. It does not execute
anything.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from pathlib import PurePosixPath
from typing import Any, Literal, Optional

from parallel_planner.core.config.planner_config import DEFAULT_CONFIG, PlannerConfig
from parallel_planner.core.conflicts.detect_conflicts import conflict_reasons
from parallel_planner.core.estimate.estimator import layer_duration
from parallel_planner.core.model import Checkpoint, ExecutionPlan, Task


Classification = Literal["parallel-safe", "sequential-required", "conditional"]

# Metadata-driven conflict detection cannot see undeclared coupling.
RISK_LOW = "LOW RISK — verify isolation"


@dataclass(frozen=True)
class TaskRationale:
    task_id: str
    kind: str
    duration: float
    classification: Classification
    edges: list[str]
    deferred_by: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LayerReport:
    index: int
    tasks: list[str]
    duration: float
    gated_by: list[Checkpoint]
    rationale: list[TaskRationale]


@dataclass(frozen=True)
class RiskFlag:
    layer: int
    tasks: tuple[str, str]
    level: str
    reasons: list[str]


@dataclass(frozen=True)
class Report:
    layers: list[LayerReport]
    sequential_total: float
    parallel_total: float
    savings_percent: float
    checkpoints: list[Checkpoint]
    risks: list[RiskFlag]
    critical_path: list[str]
    critical_path_duration: float
    duration_unit: str
    schema_version: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "layers": [
                {
                    "index": layer.index,
                    "tasks": list(layer.tasks),
                    "duration": layer.duration,
                    "gated_by": [cp.gating_task for cp in layer.gated_by],
                    "rationale": {
                        r.task_id: {
                            "kind": r.kind,
                            "duration": r.duration,
                            "classification": r.classification,
                            "edges": list(r.edges),
                            "deferred_by": list(r.deferred_by),
                        }
                        for r in layer.rationale
                    },
                }
                for layer in self.layers
            ],
            "sequential_total": self.sequential_total,
            "parallel_total": self.parallel_total,
            "savings_percent": self.savings_percent,
            "critical_path": list(self.critical_path),
            "critical_path_duration": self.critical_path_duration,
            "checkpoints": [
                {
                    "after_layer": cp.after_layer,
                    "gating_task": cp.gating_task,
                    "gated_tasks": list(cp.gated_tasks),
                    "rationale": cp.rationale,
                }
                for cp in self.checkpoints
            ],
            "risks": [
                {
                    "layer": r.layer,
                    "tasks": list(r.tasks),
                    "level": r.level,
                    "reasons": list(r.reasons),
                }
                for r in self.risks
            ],
        }


def render_report(plan: ExecutionPlan, config: PlannerConfig = DEFAULT_CONFIG) -> Report:
    graph = plan.graph
    tasks = graph.tasks_by_id

    layers: list[LayerReport] = []
    for layer in plan.layers:
        rationale = [_task_rationale(plan, tasks[tid]) for tid in layer.task_ids]
        layers.append(
            LayerReport(
                index=layer.index,
                tasks=list(layer.task_ids),
                duration=layer_duration(layer, graph),
                gated_by=list(layer.gated_by),
                rationale=rationale,
            )
        )

    est = plan.estimate
    return Report(
        layers=layers,
        sequential_total=est.sequential_total,
        parallel_total=est.parallel_total,
        savings_percent=round(est.savings_percent, config.savings_precision),
        checkpoints=plan.checkpoints,
        risks=_risk_flags(plan, config),
        critical_path=list(est.critical_path),
        critical_path_duration=est.critical_path_duration,
        duration_unit=config.duration_unit,
        schema_version=plan.schema_version,
    )


def _task_rationale(plan: ExecutionPlan, task: Task) -> TaskRationale:
    graph = plan.graph
    incoming = graph.incoming(task.id)

    earliest = 0
    for edge in incoming:
        earliest = max(earliest, plan.layer_of[edge.source] + 1)

    # Conflicting tasks that took a slot this task was otherwise eligible for.
    deferred_by: list[str] = []
    for layer in plan.layers[earliest : plan.layer_of[task.id]]:
        for other_id in layer.task_ids:
            reasons = conflict_reasons(task, graph.tasks_by_id[other_id])
            if reasons:
                deferred_by.append(f"{other_id}: {'; '.join(reasons)}")

    classification: Classification
    if any("stability_barrier" in e.reasons for e in incoming):
        classification = "conditional"
    elif incoming or deferred_by:
        classification = "sequential-required"
    else:
        classification = "parallel-safe"

    return TaskRationale(
        task_id=task.id,
        kind=task.kind,
        duration=task.estimated_duration,
        classification=classification,
        edges=[e.describe() for e in incoming],
        deferred_by=deferred_by,
    )


def _risk_flags(plan: ExecutionPlan, config: PlannerConfig) -> list[RiskFlag]:
    tasks = plan.graph.tasks_by_id
    out: list[RiskFlag] = []
    for layer in plan.layers:
        for a_id, b_id in combinations(sorted(layer.task_ids), 2):
            a, b = tasks[a_id], tasks[b_id]
            reasons: list[str] = []
            if config.flag_shared_directory:
                shared_dirs = sorted(_directories(a) & _directories(b))
                if shared_dirs:
                    reasons.append(f"touch files in the same directory: {', '.join(shared_dirs)}")
            if config.flag_shared_inputs:
                shared_inputs = sorted(a.inputs & b.inputs)
                if shared_inputs:
                    reasons.append(f"share inputs: {', '.join(shared_inputs)}")
            if reasons:
                out.append(RiskFlag(layer=layer.index, tasks=(a_id, b_id), level=RISK_LOW, reasons=reasons))
    return out


def _directories(task: Task) -> set[str]:
    # Top-level files do not count as a shared module.
    dirs = {str(PurePosixPath(p).parent) for p in task.touches}
    dirs.discard(".")
    return dirs


def render_text(report: Report) -> str:
    unit = report.duration_unit
    lines: list[str] = []
    for layer in report.layers:
        for cp in layer.gated_by:
            lines.append(f"  == CHECKPOINT: {cp.rationale}")
        lines.append(f"Layer {layer.index} ({layer.duration}{unit}): {', '.join(layer.tasks)}")
        for r in layer.rationale:
            lines.append(f"  - {r.task_id} [{r.kind}, {r.duration}{unit}] {r.classification}")
            for edge in r.edges:
                lines.append(f"      after {edge}")
            for d in r.deferred_by:
                lines.append(f"      deferred by {d}")
    if not report.layers:
        lines.append("No tasks to schedule.")

    lines.append("")
    lines.append(f"Sequential total: {report.sequential_total}{unit}")
    lines.append(f"Parallel total:   {report.parallel_total}{unit}")
    lines.append(f"Savings:          {report.savings_percent}%")
    if report.critical_path:
        lines.append(
            f"Critical path:    {' -> '.join(report.critical_path)} "
            f"({report.critical_path_duration}{unit})"
        )
    if report.checkpoints:
        lines.append(f"Checkpoints:      {len(report.checkpoints)}")
    for risk in report.risks:
        lines.append(
            f"{risk.level}: {risk.tasks[0]} + {risk.tasks[1]} in layer {risk.layer} "
            f"({'; '.join(risk.reasons)})"
        )
    return "\n".join(lines)


def render_mermaid(plan: ExecutionPlan) -> str:
    """Mermaid flowchart: one subgraph per layer, dashed arrows for stability barriers."""
    tasks = plan.graph.tasks_by_id
    lines = ["graph TD"]
    if not plan.layers:
        lines.append("  Empty[No tasks to schedule]")
        return "\n".join(lines)

    node = {tid: f"T{i}" for i, tid in enumerate(sorted(tasks))}
    for layer in plan.layers:
        lines.append(f'  subgraph L{layer.index}["Layer {layer.index}"]')
        for tid in layer.task_ids:
            label = tid
            if tasks[tid].title:
                label = f"{tid}: {tasks[tid].title}"
            label = label.replace('"', "'").replace("[", "(").replace("]", ")")
            lines.append(f'    {node[tid]}["{label}"]')
        lines.append("  end")

    for edge in plan.graph.edges.values():
        arrow = "-.->" if "stability_barrier" in edge.reasons else "-->"
        lines.append(f"  {node[edge.source]} {arrow}|{', '.join(edge.reasons)}| {node[edge.target]}")

    for cp in plan.checkpoints:
        lines.append(f"  %% Checkpoint after layer {cp.after_layer}: {cp.rationale}")
    return "\n".join(lines)
