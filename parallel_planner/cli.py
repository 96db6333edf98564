from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from parallel_planner.core.config.planner_config import ConfigError, PlannerConfig, load_and_merge
from parallel_planner.core.errors import PlanError, PlanLoadError, PlanValidationError
from parallel_planner.core.graph.build_graph import build_graph, summarize_graph
from parallel_planner.core.io.load_tasks import load_tasks
from parallel_planner.core.lint.lint_tasks import lint_tasks
from parallel_planner.core.model import DependencyGraph, TaskSet
from parallel_planner.core.plan.build_plan import build_plan
from parallel_planner.core.report.render_report import render_mermaid, render_report, render_text
from parallel_planner.core.validate.validate_tasks import validate_tasks

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log to stderr at this level (e.g. INFO)"),
) -> None:
    """Parallel execution planner CLI."""
    if log_level:
        logging.basicConfig(
            level=getattr(logging, log_level.upper(), logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            force=True,
        )
    return


def _to_item(e: PlanError) -> dict:
    if isinstance(e, PlanLoadError):
        source = "load"
    elif e.code.startswith("L_"):
        source = "lint"
    elif e.code.startswith("E_CONFIG"):
        source = "config"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(command: str, ok: bool, errors: list[PlanError], exit_code: int, **extra: Any) -> None:
    payload = {
        "tool": "planner",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in _sorted(errors)],
    }
    payload.update(extra)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _fail(command: str, format: str, errors: list[PlanError], exit_code: int) -> NoReturn:
    if format == "json":
        _emit_json(command, False, errors, exit_code)
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _check_format(command: str, format: str, allowed: tuple[str, ...]) -> None:
    if format not in allowed:
        err = PlanValidationError(
            code=f"E_{command.upper()}_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: {', '.join(allowed)})",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _load_task_set(command: str, path: str, format: str) -> TaskSet:
    try:
        doc = load_tasks(path)
    except PlanLoadError as e:
        _fail(command, format, [e], 1)

    task_set, errors = validate_tasks(doc)
    if errors or task_set is None:
        _fail(command, format, list(errors), 2)
    return task_set


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a task file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a task file and build its dependency graph."""
    _check_format("validate", format, ("text", "json"))
    task_set = _load_task_set("validate", path, format)

    try:
        graph = build_graph(task_set.tasks, external_inputs=task_set.external_inputs, file=task_set.file)
    except PlanValidationError as e:
        _fail("validate", format, [e], 2)

    if format == "text":
        typer.echo(summarize_graph(graph))
        return

    _emit_json(
        "validate",
        True,
        [],
        0,
        schema_version=task_set.schema_version,
        summary=_graph_summary(graph),
    )


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a task file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a task file (rules beyond what scheduling strictly needs)."""
    _check_format("lint", format, ("text", "json"))

    try:
        doc = load_tasks(path)
    except PlanLoadError as e:
        _fail("lint", format, [e], 1)

    errors: list[PlanError] = list(lint_tasks(doc))
    task_set, validation_errors = validate_tasks(doc)
    errors.extend(validation_errors)
    if task_set is not None:
        try:
            build_graph(task_set.tasks, external_inputs=task_set.external_inputs, file=task_set.file)
        except PlanValidationError as e:
            errors.append(e)

    if errors:
        _fail("lint", format, errors, 2)

    if format == "json":
        _emit_json("lint", True, [], 0)
    typer.echo("OK: lint passed")


@app.command("plan")
def plan(
    path: str = typer.Argument(..., help="Path to a task file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json|mermaid"),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        help="Optional YAML file overriding planner settings",
    ),
    out: Optional[str] = typer.Option(None, "--out", help="Write the rendered plan to this file"),
) -> None:
    """Build a layered parallel execution plan with checkpoints and savings estimate."""
    _check_format("plan", format, ("text", "json", "mermaid"))
    config = _load_config("plan", format, config_file)
    task_set = _load_task_set("plan", path, format)

    try:
        execution_plan = build_plan(task_set, config)
    except PlanValidationError as e:
        _fail("plan", format, [e], 2)

    report = render_report(execution_plan, config)

    if format == "mermaid":
        rendered = render_mermaid(execution_plan)
    elif format == "json":
        rendered = json.dumps(report.to_dict(), indent=2, sort_keys=True)
    else:
        rendered = render_text(report)

    if out:
        _write_text(out, rendered)
        typer.echo(f"OK: wrote {out} (layers={len(report.layers)}, savings={report.savings_percent}%)")
        return

    if format == "json":
        _emit_json("plan", True, [], 0, **report.to_dict())
    typer.echo(rendered)


def _load_config(command: str, format: str, config_file: Optional[str]) -> PlannerConfig:
    try:
        return load_and_merge(config_file)
    except FileNotFoundError:
        _fail(
            command,
            format,
            [
                PlanLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config_file}",
                    file=None,
                    path="config",
                )
            ],
            1,
        )
    except OSError as e:
        _fail(
            command,
            format,
            [
                PlanLoadError(
                    code="E_CONFIG_FILE_READ",
                    message=f"cannot read config file: {e}",
                    file=config_file,
                    path="config",
                )
            ],
            1,
        )
    except ConfigError as e:
        _fail(
            command,
            format,
            [
                PlanValidationError(
                    code="E_CONFIG_FILE_INVALID",
                    message=str(e),
                    file=config_file,
                    path="config",
                )
            ],
            2,
        )


def _graph_summary(graph: DependencyGraph) -> dict[str, Any]:
    from collections import Counter

    kinds = Counter([t.kind for t in graph.tasks_by_id.values()])
    reasons = Counter([r for e in graph.edges.values() for r in e.reasons])
    return {
        "task_count": len(graph.tasks_by_id),
        "edge_count": len(graph.edges),
        "kind_counts": {k: int(v) for k, v in kinds.items()},
        "edge_reasons": {k: int(v) for k, v in reasons.items()},
    }


def _write_text(path: str, text: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text + "\n", encoding="utf-8")


def _sorted(errors: list[PlanError]) -> list[PlanError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _print_errors(errors: list[PlanError]) -> None:
    for e in _sorted(errors):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="planner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
