"""
Command-line interface for ExtentReports.

This module provides a subcommand-based CLI using Typer.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml

from extent_reports.core.config import DisplayOrder, NetworkMode, ReportConfig
from extent_reports.core.errors import ConfigurationError, ImportFailure, SinkCommitFailure
from extent_reports.core.logging import setup_logger
from extent_reports.reporting.engine import ReportEngine
from extent_reports.reporting.handle import TestHandle
from extent_reports.reporting.sinks import create_sink, reporter_type_for

app = typer.Typer(
    name="extent-reports",
    help="Test-execution report aggregator - render test results to HTML, JSON, sqlite and JUnit reports",
    add_completion=False,
)


def load_results(path: Path) -> Dict[str, Any]:
    """
    Load a results file (YAML or JSON).

    Expected layout:
        system_info: {key: value}
        runner_output: [line, ...]
        tests:
          - name: ...
            description: ...
            categories: [...]
            authors: [...]
            logs: [{status: pass, details: ...}]
            children: [<test>, ...]
            ended: true
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


def play_tests(engine: ReportEngine, entries: List[Dict[str, Any]], parent: Optional[TestHandle] = None) -> int:
    """Report ``entries`` through ``engine``; return how many tests were started."""
    started = 0
    for entry in entries or []:
        description = entry.get("description", "")
        if parent is None:
            handle = engine.start_test(entry["name"], description)
        else:
            handle = parent.create_child(entry["name"], description)
        started += 1
        handle.assign_category(*entry.get("categories", []))
        handle.assign_author(*entry.get("authors", []))
        for event in entry.get("logs", []):
            handle.log(event.get("status", "info"), event.get("details", ""))
        started += play_tests(engine, entry.get("children", []), handle)
        if entry.get("ended", True):
            engine.end_test(handle)
    return started


@app.command()
def record(
    results: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON results file"),
    out: Path = typer.Option(..., "--out", "-o", help="Report to write (.html, .htm, .json, .db, .xml)"),
    also: List[Path] = typer.Option([], "--also", help="Additional report(s) to write"),
    append: bool = typer.Option(False, "--append", help="Append to existing reports instead of replacing them"),
    newest_first: bool = typer.Option(False, "--newest-first", help="List newest tests first"),
    offline: bool = typer.Option(False, "--offline", help="Write CSS/JS beside HTML reports"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="TOML report configuration"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", help="Verbosity level (0-3)"),
):
    """Record a results file into one or more reports."""
    logger = setup_logger(verbosity=verbosity)

    try:
        data = load_results(results)
    except (OSError, ValueError, yaml.YAMLError) as e:
        typer.echo(f"✗ Could not read results: {e}", err=True)
        sys.exit(1)

    config = ReportConfig(
        replace_existing=not append,
        display_order=DisplayOrder.NEWEST_FIRST if newest_first else DisplayOrder.OLDEST_FIRST,
        network_mode=NetworkMode.OFFLINE if offline else NetworkMode.ONLINE,
    )
    engine = ReportEngine(config, logger=logger)
    config_file = config_file or ReportConfig.default_file()
    if config_file:
        engine.load_config(config_file)

    for path in [out, *also]:
        engine.start_reporter(None, path)
    if not engine.sinks:
        typer.echo("✗ No usable report path given", err=True)
        sys.exit(1)

    error = None
    try:
        engine.add_system_info(data.get("system_info") or {})
        for line in data.get("runner_output") or []:
            engine.set_test_runner_output(line)
        count = play_tests(engine, data.get("tests") or [])
    except (KeyError, TypeError, ValueError) as e:
        error = f"Invalid results file: {e}"

    # Whatever was played before an error is still written
    try:
        engine.close()
    except SinkCommitFailure as e:
        error = error or str(e)
    if error:
        typer.echo(f"✗ {error}", err=True)
        sys.exit(1)

    for error in engine.configuration_errors:
        typer.echo(f"⚠ {error}", err=True)
    typer.echo(f"✓ Recorded {count} test(s) into {len(engine.sinks)} report(s)")


@app.command()
def inspect(
    artifact: Path = typer.Argument(..., help="Existing report (.html, .htm, .json, .db)"),
):
    """List the tests stored in an existing report."""
    try:
        sink = create_sink(reporter_type_for(artifact), artifact)
    except ConfigurationError as e:
        typer.echo(f"✗ {e}", err=True)
        sys.exit(1)

    importer = sink.create_importer()
    if importer is None:
        typer.echo(f"✗ {sink.format_name} reports cannot be read back", err=True)
        sys.exit(1)

    try:
        imported = importer.import_from(artifact)
    except ImportFailure as e:
        typer.echo(f"✗ {e}", err=True)
        sys.exit(1)

    typer.echo(f"{artifact}: {len(imported.tests)} test(s)")
    for test in imported.tests:
        typer.echo(
            f"  [{test.status.value.upper():7}] {test.name} "
            f"({len(test.logs)} log(s), {len(test.children)} child test(s))"
        )
    if imported.system_info:
        typer.echo("System info:")
        for key, value in imported.system_info.items():
            typer.echo(f"  {key}: {value}")
    if imported.skipped:
        typer.echo(f"⚠ Skipped {imported.skipped} malformed test(s)")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
