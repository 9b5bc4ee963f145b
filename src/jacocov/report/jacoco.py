"""JaCoCo XML emitter.

Renders normalized istanbul summary metrics as a report-level JaCoCo document
that CI dashboards understand. Istanbul has no notion of classes or
cyclomatic complexity, so those counters are always zero.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from defusedxml import ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from jacocov.report.extractor import MalformedInputError
from jacocov.report.models import CANONICAL_CATEGORIES, NormalizedMetric

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

JACOCO_FILENAME = "jacoco.xml"

_STATEMENTS, _BRANCHES, _FUNCTIONS, _LINES = CANONICAL_CATEGORIES

# JaCoCo counter type -> istanbul summary category (None: always zero)
COUNTER_SOURCES: tuple[tuple[str, str | None], ...] = (
    ("INSTRUCTION", _STATEMENTS),
    ("BRANCH", _BRANCHES),
    ("LINE", _LINES),
    ("COMPLEXITY", None),
    ("METHOD", _FUNCTIONS),
    ("CLASS", None),
)

_HEADER = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<!DOCTYPE report PUBLIC "-//JACOCO//DTD Report 1.0//EN" "report.dtd">\n'
)
_COUNTER_TEMPLATE = '     <counter type="{type}" missed="{missed}" covered="{covered}" />\n'

_COLLAPSE_RE = re.compile(r"(?:[\r\n\t]|\s{2,})+")

_EMPTY = NormalizedMetric(covered=0, total=0)


def _counter_values(
    metrics: Mapping[str, NormalizedMetric | None], category: str | None
) -> NormalizedMetric:
    if category is None:
        return _EMPTY
    metric = metrics.get(category)
    if metric is None:
        logger.debug("No usable %s metric; emitting zero counter", category)
        return _EMPTY
    return metric


def emit(metrics: Mapping[str, NormalizedMetric | None]) -> str:
    """Render *metrics* as a whitespace-collapsed JaCoCo XML document.

    Categories that are absent (or None) yield ``missed="0" covered="0"``.
    Never fails for a well-typed mapping.
    """
    lines = [_HEADER, '    <report name="jacoco report">\n']
    for counter_type, category in COUNTER_SOURCES:
        metric = _counter_values(metrics, category)
        lines.append(
            _COUNTER_TEMPLATE.format(
                type=counter_type, missed=metric.missed, covered=metric.covered
            )
        )
    lines.append("    </report>\n    ")
    return _COLLAPSE_RE.sub("", "".join(lines))


def write_report(coverage_dir: Path, metrics: Mapping[str, NormalizedMetric | None]) -> Path:
    """Write ``<coverage_dir>/jacoco.xml``, replacing any previous report.

    The document is written to a sibling temp file and moved into place, so a
    failed write never leaves a truncated report behind.
    """
    output_path = coverage_dir / JACOCO_FILENAME
    document = emit(metrics)
    f = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=coverage_dir,
        prefix=f".{JACOCO_FILENAME}.",
        suffix=".tmp",
        delete=False,
    )
    tmp_path = Path(f.name)
    try:
        with f:
            f.write(document)
        os.replace(tmp_path, output_path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info("Wrote JaCoCo report to %s", output_path)
    return output_path


def read_counters(jacoco_file: Path) -> dict[str, tuple[int, int]]:
    """Read the report-level counters of a JaCoCo XML file.

    Returns:
        Mapping of counter type to ``(missed, covered)``.

    Raises:
        MalformedInputError: If the file cannot be read or parsed, or its root
            element is not ``<report>``.
    """
    try:
        tree = ElementTree.parse(jacoco_file)
    except (DefusedParseError, OSError) as e:
        raise MalformedInputError(jacoco_file, str(e)) from e

    root = tree.getroot()
    if root.tag != "report":
        raise MalformedInputError(jacoco_file, f"root element is <{root.tag}>, not <report>")

    counters: dict[str, tuple[int, int]] = {}
    for counter in root.findall("counter"):
        try:
            missed = int(counter.get("missed", "0"))
            covered = int(counter.get("covered", "0"))
        except ValueError as e:
            raise MalformedInputError(jacoco_file, f"non-integer counter: {e}") from e
        counters[counter.get("type", "")] = (missed, covered)
    return counters
