from __future__ import annotations

import logging

from parallel_planner.core.config.planner_config import DEFAULT_CONFIG, PlannerConfig
from parallel_planner.core.estimate.estimator import estimate
from parallel_planner.core.graph.build_graph import build_graph
from parallel_planner.core.model import ExecutionPlan, TaskSet
from parallel_planner.core.schedule.checkpoints import insert_checkpoints
from parallel_planner.core.schedule.scheduler import schedule

logger = logging.getLogger(__name__)


def build_plan(task_set: TaskSet, config: PlannerConfig = DEFAULT_CONFIG) -> ExecutionPlan:
    """Run the planning pipeline: graph -> schedule -> checkpoints -> estimate.

    Pure and deterministic; configuration errors from the graph builder
    propagate to the caller.
    """
    graph = build_graph(
        task_set.tasks,
        external_inputs=task_set.external_inputs,
        file=task_set.file,
    )
    layers = schedule(graph)
    layers = insert_checkpoints(layers, graph, split_gated_layers=config.split_gated_layers)
    est = estimate(layers, graph)

    layer_of = {tid: layer.index for layer in layers for tid in layer.task_ids}
    logger.info(
        "Planned %d tasks: %d layers, %d checkpoints",
        len(layer_of),
        len(layers),
        sum(len(layer.gated_by) for layer in layers),
    )
    return ExecutionPlan(
        layers=tuple(layers),
        graph=graph,
        estimate=est,
        schema_version=task_set.schema_version,
        layer_of=layer_of,
    )
