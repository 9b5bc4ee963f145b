"""Sequential pipeline behind the ``cov`` command.

Runs mocha under ``istanbul cover``, has istanbul render its reports, then
converts the lcov HTML summary into ``jacoco.xml``. Each step must finish
before the next starts because it reads the previous step's files.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from jacocov.config import ENV_TESTS
from jacocov.report.extractor import load_metrics
from jacocov.report.jacoco import write_report
from jacocov.utils.subprocess_runner import SubprocessFailureError, run_subprocess

if TYPE_CHECKING:
    from pathlib import Path

    from jacocov.config import JacocovConfig
    from jacocov.report.models import NormalizedMetric
    from jacocov.utils.subprocess_runner import SubprocessResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CovOptions:
    """Inputs for a single coverage run."""

    project_root: Path
    config: JacocovConfig
    excludes: tuple[str, ...] = ()
    """Final exclusion globs (see :func:`jacocov.config.build_excludes`)."""
    test_files: tuple[str, ...] = ()
    """Test files from the command line; empty falls back to ``$TESTS`` then config."""
    ci_mode: bool = False
    """Capture child output and replay it on stderr, keeping stdout for JSON."""

    @property
    def coverage_dir(self) -> Path:
        return self.project_root / self.config.cov.coverage_dir

    @property
    def tmp_dir(self) -> Path:
        return self.project_root / self.config.cov.tmp_dir

    @property
    def istanbul_cli(self) -> Path:
        return self.project_root / self.config.cov.istanbul_bin


@dataclass
class CovResult:
    """Outcome of a successful run."""

    coverage_dir: Path
    jacoco_path: Path
    metrics: dict[str, NormalizedMetric | None] = field(default_factory=dict)


def build_test_args(options: CovOptions) -> list[str]:
    """Return the mocha arguments that follow ``--``."""
    cov = options.config.cov
    args = ["--timeout", str(cov.test_timeout), "--reporter", cov.reporter]
    for module in cov.require:
        args.extend(["--require", module])

    if options.test_files:
        files = list(options.test_files)
    elif os.environ.get(ENV_TESTS):
        files = [os.environ[ENV_TESTS]]
    else:
        files = list(cov.test_files)
    args.extend(files)
    return args


def build_cover_args(options: CovOptions) -> list[str]:
    """Return the ``istanbul cover`` arguments for running mocha."""
    args = ["cover", "--report", "none", "--print", "none", "--include-pid"]
    for exclude in options.excludes:
        args.extend(["-x", exclude])

    mocha = str(options.project_root / options.config.cov.mocha_bin)
    test_args = build_test_args(options)
    logger.debug("Test args: %s", test_args)
    return [*args, mocha, "--", *test_args]


def build_report_args(coverage_dir: Path, formats: list[str]) -> list[str]:
    """Return the ``istanbul report`` arguments for *coverage_dir*."""
    return ["report", "--root", str(coverage_dir), *formats]


def _child_env(options: CovOptions) -> dict[str, str]:
    return {
        "NODE_ENV": "test",
        "TMPDIR": str(options.tmp_dir),
        "istanbul_bin_path": str(options.istanbul_cli),
    }


def convert_report(coverage_dir: Path) -> CovResult:
    """Convert ``<coverage_dir>/lcov-report/index.html`` into ``jacoco.xml``.

    Raises:
        MalformedInputError: If the HTML summary cannot be read.
    """
    metrics = load_metrics(coverage_dir)
    jacoco_path = write_report(coverage_dir, metrics)
    return CovResult(coverage_dir=coverage_dir, jacoco_path=jacoco_path, metrics=metrics)


def _relay_to_stderr(result: SubprocessResult) -> None:
    for output in (result.stdout, result.stderr):
        if output:
            sys.stderr.write(output)
    sys.stderr.flush()


async def _run_step(command: list[str], options: CovOptions, env: dict[str, str]) -> None:
    """Run one istanbul step, raising on a non-zero exit.

    In CI mode the child's output is captured and replayed on stderr so that
    stdout carries only the JSON result.
    """
    try:
        result = await run_subprocess(
            command,
            cwd=options.project_root,
            timeout=options.config.cov.timeout,
            env=env,
            check=True,
            capture=options.ci_mode,
        )
    except SubprocessFailureError as e:
        if options.ci_mode:
            _relay_to_stderr(e.result)
        raise
    if options.ci_mode:
        _relay_to_stderr(result)


async def run_cov(options: CovOptions) -> CovResult:
    """Run tests with coverage and generate ``jacoco.xml``.

    Raises:
        SubprocessFailureError: If either istanbul step exits non-zero; later
            steps are skipped and no ``jacoco.xml`` is written.
        MalformedInputError: If the generated HTML summary cannot be read.
    """
    cov = options.config.cov
    coverage_dir = options.coverage_dir
    tmp_dir = options.tmp_dir
    node_cmd = [cov.node, str(options.istanbul_cli)]
    env = _child_env(options)

    tmp_dir.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(shutil.rmtree, coverage_dir, ignore_errors=True)

    # save coverage-<pid>.json to the coverage dir
    cover_args = build_cover_args(options)
    logger.debug("Cover args: %s", cover_args)
    try:
        await _run_step([*node_cmd, *cover_args], options, env)
    finally:
        await asyncio.to_thread(shutil.rmtree, tmp_dir, ignore_errors=True)

    report_args = build_report_args(coverage_dir, cov.report_formats)
    logger.debug("Report args: %s", report_args)
    await _run_step([*node_cmd, *report_args], options, env)

    return await asyncio.to_thread(convert_report, coverage_dir)
