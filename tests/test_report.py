from pathlib import Path

from parallel_planner.core.config.planner_config import PlannerConfig
from parallel_planner.core.io.load_tasks import load_tasks
from parallel_planner.core.model import Task, TaskSet
from parallel_planner.core.plan.build_plan import build_plan
from parallel_planner.core.report.render_report import (
    RISK_LOW,
    render_mermaid,
    render_report,
    render_text,
)
from parallel_planner.core.validate.validate_tasks import validate_tasks

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def _task(tid: str, duration: float, **kw) -> Task:
    sets = {k: frozenset(v) for k, v in kw.items()}
    return Task(id=tid, estimated_duration=duration, **sets)


def _basic_plan():
    task_set, _ = validate_tasks(load_tasks(str(EXAMPLES / "basic-tasks.yaml")))
    assert task_set is not None
    return build_plan(task_set)


def test_report_dict_shape():
    payload = render_report(_basic_plan()).to_dict()
    assert payload["schema_version"] == "0.1.0"
    assert [(layer["index"], layer["tasks"], layer["duration"]) for layer in payload["layers"]] == [
        (0, ["api-spec"], 4),
        (1, ["docs", "frontend", "backend"], 8),
        (2, ["e2e-tests"], 5),
        (3, ["refactor-backend"], 3),
    ]
    assert payload["sequential_total"] == 28
    assert payload["parallel_total"] == 20
    assert payload["savings_percent"] == 28.6
    assert payload["checkpoints"] == [
        {
            "after_layer": 2,
            "gating_task": "backend",
            "gated_tasks": ["refactor-backend"],
            "rationale": "backend must be stable before refactor refactor-backend proceeds",
        }
    ]
    assert payload["layers"][3]["gated_by"] == ["backend"]


def test_rationale_lists_justifying_edges():
    report = render_report(_basic_plan())
    by_id = {r.task_id: r for layer in report.layers for r in layer.rationale}

    assert by_id["api-spec"].edges == []
    assert by_id["api-spec"].classification == "parallel-safe"
    assert by_id["backend"].edges == ["api-spec -> backend [data_dependency] via api-contract"]
    assert by_id["backend"].classification == "sequential-required"
    assert by_id["refactor-backend"].edges == ["backend -> refactor-backend [stability_barrier]"]
    assert by_id["refactor-backend"].classification == "conditional"
    assert by_id["e2e-tests"].edges == [
        "backend -> e2e-tests [data_dependency] via backend-module",
        "frontend -> e2e-tests [data_dependency] via frontend-module",
    ]


def test_conflict_deferral_is_explained():
    plan = build_plan(
        TaskSet(tasks=[_task("A", 8, touches=["shared.md"]), _task("B", 8, touches=["shared.md"])])
    )
    report = render_report(plan)
    b = report.layers[1].rationale[0]
    assert b.task_id == "B"
    assert b.edges == []
    assert b.deferred_by == ["A: both touch shared.md"]
    assert b.classification == "sequential-required"


def test_shared_inputs_flagged_low_risk():
    report = render_report(_basic_plan())
    assert [r.tasks for r in report.risks] == [
        ("backend", "docs"),
        ("backend", "frontend"),
        ("docs", "frontend"),
    ]
    assert all(r.level == RISK_LOW for r in report.risks)
    assert all(r.layer == 1 for r in report.risks)
    assert report.risks[0].reasons == ["share inputs: api-contract"]


def test_shared_directory_flag_follows_config():
    plan = build_plan(
        TaskSet(
            tasks=[
                _task("A", 2, touches=["src/api/users.py"]),
                _task("B", 2, touches=["src/api/orders.py"]),
                _task("C", 2, touches=["README.md"]),
                _task("D", 2, touches=["CHANGELOG.md"]),
            ]
        )
    )
    report = render_report(plan)
    [risk] = report.risks
    assert risk.tasks == ("A", "B")
    assert risk.reasons == ["touch files in the same directory: src/api"]

    quiet = render_report(plan, PlannerConfig(flag_shared_directory=False))
    assert quiet.risks == []


def test_savings_precision_from_config():
    plan = build_plan(TaskSet(tasks=[_task("A", 4), _task("B", 4), _task("C", 4)]))
    assert render_report(plan).savings_percent == 66.7
    assert render_report(plan, PlannerConfig(savings_precision=3)).savings_percent == 66.667


def test_render_text_summary():
    text = render_text(render_report(_basic_plan()))
    assert "Layer 0 (4h): api-spec" in text
    assert "== CHECKPOINT: backend must be stable before refactor refactor-backend proceeds" in text
    assert "Savings:          28.6%" in text
    assert "Critical path:    api-spec -> backend -> e2e-tests (17h)" in text
    assert RISK_LOW in text


def test_render_text_empty_plan():
    text = render_text(render_report(build_plan(TaskSet(tasks=[]))))
    assert "No tasks to schedule." in text
    assert "Savings:          0" in text


def test_render_mermaid():
    out = render_mermaid(_basic_plan())
    assert out.startswith("graph TD")
    assert 'subgraph L0["Layer 0"]' in out
    assert "-.->|stability_barrier|" in out
    assert "%% Checkpoint after layer 2" in out
    assert "Draft API contract" in out
