"""jacocov CLI top-level command group."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from jacocov import __version__
from jacocov.config import (
    CONFIG_FILENAME,
    DEFAULT_EXCLUDES,
    ENV_EXCLUDES,
    build_excludes,
    load_config,
    validate_config,
)
from jacocov.orchestrator import CovOptions, CovResult, convert_report, run_cov
from jacocov.report.extractor import MalformedInputError
from jacocov.report.jacoco import read_counters
from jacocov.reporters.terminal import reporter
from jacocov.utils.subprocess_runner import SubprocessFailureError

logger = logging.getLogger(__name__)
console = Console()


def _configure_logging(*, verbose: bool) -> None:
    package_logger = logging.getLogger("jacocov")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


def _is_ci() -> bool:
    ctx = click.get_current_context()
    return bool(ctx.obj.get("ci", False)) if ctx.obj else False


def _display_result_json(result: CovResult, counters: dict[str, tuple[int, int]]) -> None:
    """Display the generated report in JSON format for CI mode."""
    result_dict = {
        "jacoco": str(result.jacoco_path),
        "counters": {
            counter_type: {"missed": missed, "covered": covered}
            for counter_type, (missed, covered) in counters.items()
        },
        "unparsed_categories": sorted(
            name for name, metric in result.metrics.items() if metric is None
        ),
    }
    click.echo(json.dumps(result_dict, indent=2))


def _display_result(result: CovResult, *, ci_mode: bool) -> None:
    try:
        counters = read_counters(result.jacoco_path)
    except MalformedInputError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    if ci_mode:
        _display_result_json(result, counters)
        return

    for name, metric in result.metrics.items():
        if metric is None:
            reporter.print_warning(f"{name}: unparseable fraction, reported as 0/0")
    reporter.print_jacoco_summary(counters)
    reporter.print_success(f"JaCoCo report written to {result.jacoco_path}")


@click.group()
@click.option(
    "--ci",
    is_flag=True,
    help="CI mode: machine-readable JSON output.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="jacocov")
@click.pass_context
def cli(ctx: click.Context, *, ci: bool, verbose: bool) -> None:
    """jacocov: run tests under istanbul coverage and emit a JaCoCo summary."""
    ctx.ensure_object(dict)
    ctx.obj["ci"] = ci
    _configure_logging(verbose=verbose)


@cli.command()
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "-x",
    "excludes",
    multiple=True,
    help="Istanbul coverage ignore, one or more fileset patterns.",
)
@click.argument("files", nargs=-1)
def cov(path: str, excludes: tuple[str, ...], files: tuple[str, ...]) -> None:
    """Run tests with coverage and write <coverage_dir>/jacoco.xml.

    Extra exclusion globs can also be given as a comma-separated list in
    the COV_EXCLUDES environment variable.

    Example:
      jacocov cov
      jacocov cov -x 'lib/legacy/**' test/foo.test.js
    """
    ci_mode = _is_ci()
    if not ci_mode:
        reporter.print_header("jacocov cov")

    try:
        config = load_config(path)
    except Exception as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    errors = validate_config(config)
    if errors:
        for error in errors:
            reporter.print_error(error)
        raise click.Abort

    options = CovOptions(
        project_root=Path(path),
        config=config,
        excludes=build_excludes(
            (*DEFAULT_EXCLUDES, *config.cov.excludes),
            excludes,
            os.environ.get(ENV_EXCLUDES),
        ),
        test_files=files,
        ci_mode=ci_mode,
    )
    logger.debug("Coverage excludes: %s", options.excludes)

    try:
        result = asyncio.run(run_cov(options))
    except SubprocessFailureError as e:
        reporter.print_error(str(e))
        click.get_current_context().exit(e.exit_code)
    except MalformedInputError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    _display_result(result, ci_mode=ci_mode)


@cli.command()
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--coverage-dir",
    default=None,
    help="Coverage directory holding lcov-report/ (default: from config).",
)
def report(path: str, coverage_dir: str | None) -> None:
    """Convert an existing lcov HTML report into jacoco.xml."""
    try:
        config = load_config(path)
    except Exception as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    target = Path(path) / (coverage_dir or config.cov.coverage_dir)

    try:
        result = convert_report(target)
    except MalformedInputError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    _display_result(result, ci_mode=_is_ci())


@cli.group("config")
def config_group() -> None:
    """Inspect the .jacocov.yml configuration."""


def _config_to_dict(config: Any) -> dict[str, Any]:
    """Convert JacocovConfig to dictionary for display."""
    result = asdict(config)
    result.pop("raw", None)
    return result


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output as JSON instead of YAML.",
)
def config_show(path: str, *, as_json: bool) -> None:
    """Display the resolved configuration."""
    try:
        config = load_config(path)
    except Exception as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    config_dict = _config_to_dict(config)
    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate the configuration values."""
    try:
        config = load_config(path)
    except Exception as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    errors = validate_config(config)
    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")

    console.print()
    console.print(
        f"[dim]Fix these errors in {CONFIG_FILENAME} and run 'jacocov config validate' again.[/dim]"
    )
    raise click.Abort
