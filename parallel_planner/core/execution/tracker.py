"""Executor-side lifecycle record for an ExecutionPlan.

The planner never records transitions itself. An executor drives a
PlanTracker as it dispatches tasks and receives results, and asks it which
tasks may start. Recovery after a failure (retry, abort, skip) stays with the
executor; the tracker only reports which tasks are blocked.
"""
from __future__ import annotations

import logging

from parallel_planner.core.errors import IllegalTransitionError
from parallel_planner.core.model import ExecutionPlan, Layer, TaskState

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[TaskState, set[TaskState]] = {
    TaskState.PENDING: {TaskState.SCHEDULED},
    TaskState.SCHEDULED: {TaskState.RUNNING},
    TaskState.RUNNING: {TaskState.COMPLETED, TaskState.FAILED},
    TaskState.COMPLETED: {TaskState.STABLE},
    TaskState.FAILED: set(),
    TaskState.STABLE: set(),
}

DONE_STATES = {TaskState.COMPLETED, TaskState.STABLE}


class PlanTracker:
    def __init__(self, plan: ExecutionPlan):
        self.plan = plan
        self.states: dict[str, TaskState] = {tid: TaskState.PENDING for tid in plan.layer_of}
        for tid in self.states:
            self._transition(tid, TaskState.SCHEDULED)

    def state(self, task_id: str) -> TaskState:
        self._require_known(task_id)
        return self.states[task_id]

    def mark_running(self, task_id: str) -> None:
        if task_id not in self.ready_tasks():
            self._require_known(task_id)
            raise IllegalTransitionError(
                code="E_ILLEGAL_TRANSITION",
                message=f"task {task_id} is not ready to run",
                path=task_id,
            )
        self._transition(task_id, TaskState.RUNNING)

    def mark_completed(self, task_id: str) -> None:
        self._transition(task_id, TaskState.COMPLETED)

    def mark_failed(self, task_id: str) -> None:
        self._transition(task_id, TaskState.FAILED)
        logger.warning("Task %s failed; blocked dependents: %s", task_id, self.dependents_of(task_id))

    def mark_stable(self, task_id: str) -> None:
        """Record the external stability signal (tests passing, no known defects)."""
        self._transition(task_id, TaskState.STABLE)

    def current_layer(self) -> Layer | None:
        """First layer with a task that is not yet done, or None when finished."""
        for layer in self.plan.layers:
            if any(self.states[tid] not in DONE_STATES for tid in layer.task_ids):
                return layer
        return None

    def ready_tasks(self) -> list[str]:
        """Tasks that may be dispatched now.

        A layer opens only when every earlier layer is done and the gating
        task of each of its checkpoints is Stable.
        """
        layer = self.current_layer()
        if layer is None:
            return []
        for cp in layer.gated_by:
            if self.states[cp.gating_task] is not TaskState.STABLE:
                return []
        return [tid for tid in layer.task_ids if self.states[tid] is TaskState.SCHEDULED]

    def pending_checkpoints(self) -> list[str]:
        layer = self.current_layer()
        if layer is None:
            return []
        return [
            cp.gating_task
            for cp in layer.gated_by
            if self.states[cp.gating_task] is not TaskState.STABLE
        ]

    def dependents_of(self, task_id: str) -> list[str]:
        """All transitive dependents of task_id."""
        seen: set[str] = set()
        frontier = [task_id]
        while frontier:
            cur = frontier.pop()
            for nxt in self.plan.graph.successors(cur):
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return sorted(seen)

    def blocked_tasks(self) -> list[str]:
        """Tasks that can never correctly run because a dependency failed."""
        blocked: set[str] = set()
        for tid, st in self.states.items():
            if st is TaskState.FAILED:
                blocked.update(self.dependents_of(tid))
        return sorted(blocked)

    def is_finished(self) -> bool:
        return self.current_layer() is None

    def _transition(self, task_id: str, target: TaskState) -> None:
        self._require_known(task_id)
        current = self.states[task_id]
        if target not in ALLOWED_TRANSITIONS[current]:
            raise IllegalTransitionError(
                code="E_ILLEGAL_TRANSITION",
                message=f"task {task_id}: cannot go from {current.value} to {target.value}",
                path=task_id,
            )
        self.states[task_id] = target

    def _require_known(self, task_id: str) -> None:
        if task_id not in self.states:
            raise IllegalTransitionError(
                code="E_UNKNOWN_TASK",
                message=f"unknown task id: {task_id}",
                path=task_id,
            )
