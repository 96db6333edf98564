from pathlib import Path

from parallel_planner.core.io.load_tasks import load_tasks
from parallel_planner.core.validate.validate_tasks import validate_tasks

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def test_validate_happy_path():
    doc = load_tasks(str(EXAMPLES / "basic-tasks.yaml"))
    task_set, errors = validate_tasks(doc)
    assert errors == []
    assert task_set is not None
    assert len(task_set.tasks) == 6
    assert task_set.external_inputs == frozenset({"requirements"})

    by_id = {t.id: t for t in task_set.tasks}
    assert by_id["refactor-backend"].kind == "refactor"
    assert by_id["refactor-backend"].requires_stable == frozenset({"backend"})
    assert by_id["backend"].kind == "implementation"
    assert by_id["backend"].explicit_after == frozenset()


def test_validate_bad_types():
    doc = load_tasks(str(EXAMPLES / "invalid-bad-type.yaml"))
    task_set, errors = validate_tasks(doc)
    assert task_set is None
    by_path = {e.path: e.code for e in errors}
    assert by_path["tasks[0].estimated_duration"] == "E_INVALID_TYPE"
    assert by_path["tasks[0].touches"] == "E_INVALID_TYPE"
    assert by_path["tasks[1].kind"] == "E_INVALID_ENUM"


def test_validate_non_positive_duration():
    doc = {"tasks": [{"id": "A", "estimated_duration": 0}, {"id": "B", "estimated_duration": -2}]}
    task_set, errors = validate_tasks(doc)
    assert task_set is None
    assert [e.code for e in errors] == ["E_INVALID_VALUE", "E_INVALID_VALUE"]


def test_validate_non_finite_duration(tmp_path):
    p = tmp_path / "tasks.json"
    p.write_text(
        '[{"id": "A", "estimated_duration": NaN}, {"id": "B", "estimated_duration": Infinity}]',
        encoding="utf-8",
    )
    task_set, errors = validate_tasks(load_tasks(str(p)))
    assert task_set is None
    assert [(e.path, e.code) for e in errors] == [
        ("tasks[0].estimated_duration", "E_INVALID_VALUE"),
        ("tasks[1].estimated_duration", "E_INVALID_VALUE"),
    ]

    y = tmp_path / "tasks.yaml"
    y.write_text("tasks:\n  - id: A\n    estimated_duration: .inf\n", encoding="utf-8")
    task_set, errors = validate_tasks(load_tasks(str(y)))
    assert task_set is None
    assert errors[0].code == "E_INVALID_VALUE"


def test_validate_boolean_duration_rejected():
    task_set, errors = validate_tasks({"tasks": [{"id": "A", "estimated_duration": True}]})
    assert task_set is None
    assert errors[0].code == "E_INVALID_TYPE"


def test_validate_missing_fields():
    task_set, errors = validate_tasks({"tasks": [{"touches": ["a.py"]}, "not-a-task"]})
    assert task_set is None
    codes = {(e.path, e.code) for e in errors}
    assert ("tasks[0].id", "E_REQUIRED_FIELD") in codes
    assert ("tasks[0].estimated_duration", "E_REQUIRED_FIELD") in codes
    assert ("tasks[1]", "E_INVALID_TYPE") in codes


def test_validate_tasks_must_be_array():
    task_set, errors = validate_tasks({"tasks": None})
    assert task_set is None
    assert errors[0].code == "E_REQUIRED_FIELD"
    assert errors[0].path == "tasks"


def test_validate_empty_task_list_is_valid():
    task_set, errors = validate_tasks({"tasks": []})
    assert errors == []
    assert task_set is not None
    assert task_set.tasks == []


def test_validate_keeps_duplicates_for_graph_builder():
    doc = load_tasks(str(EXAMPLES / "invalid-duplicate-id.json"))
    task_set, errors = validate_tasks(doc)
    assert errors == []
    assert task_set is not None
    assert [t.id for t in task_set.tasks] == ["A", "A"]
