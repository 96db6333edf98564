import json

from typer.testing import CliRunner

from parallel_planner.cli import app

runner = CliRunner()


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", "examples/basic-tasks.yaml"])
    assert r.exit_code == 0
    assert r.stdout.strip() == (
        "OK: 6 tasks, 6 edges (data_dependency=5, explicit_after=0, stability_barrier=1)"
    )


def test_cli_validate_cycle():
    r = runner.invoke(app, ["validate", "examples/invalid-cycle.yaml"])
    assert r.exit_code == 2
    assert "E_CYCLE" in r.output
    assert "A -> B -> A" in r.output


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/does-not-exist.yaml"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/basic-tasks.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["tool"] == "planner"
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["errors"] == []
    assert payload["summary"]["task_count"] == 6
    assert payload["summary"]["edge_reasons"] == {"data_dependency": 5, "stability_barrier": 1}


def test_cli_validate_json_failure_contains_codes():
    r = runner.invoke(app, ["validate", "examples/invalid-bad-type.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    codes = {e["code"] for e in payload["errors"]}
    assert {"E_INVALID_TYPE", "E_INVALID_ENUM"} <= codes
    assert {e["source"] for e in payload["errors"]} == {"validate"}


def test_cli_validate_duplicate_and_unknown_reference():
    r = runner.invoke(app, ["validate", "examples/invalid-duplicate-id.json", "--format", "json"])
    assert r.exit_code == 2
    [err] = json.loads(r.stdout)["errors"]
    assert (err["code"], err["path"]) == ("E_DUPLICATE_ID", "tasks[1].id")

    r = runner.invoke(app, ["validate", "examples/invalid-unknown-ref.yaml"])
    assert r.exit_code == 2
    assert "E_UNKNOWN_REFERENCE" in r.output
    assert "ghost" in r.output


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", "examples/basic-tasks.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output
