"""Report extractor for istanbul's HTML coverage summary.

Istanbul's ``lcov`` reporter writes ``lcov-report/index.html``. Its summary
panel carries one block per coverage category::

    <div class='fl pad1y space-right2'>
        <span class="strong">85.71% </span>
        <span class="quiet">Statements</span>
        <span class='fraction'>6/7</span>
    </div>

The extractor reads those blocks through the narrow
:class:`CoverageSummaryDocument` interface and normalizes each fraction into
covered/total counts.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup

from jacocov.report.models import MetricBlock, NormalizedMetric

if TYPE_CHECKING:
    from pathlib import Path

    from bs4.element import Tag

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

SUMMARY_HTML_PATH = "lcov-report/index.html"
"""Location of the HTML summary, relative to the coverage directory."""

_BLOCK_SELECTOR = ".wrapper > .pad1:first-child .fl.pad1y.space-right2"
_PERCENT_SELECTOR = ".strong"
_NAME_SELECTOR = ".quiet"
_FRACTION_SELECTOR = ".fraction"

_FRACTION_SEPARATOR = "/"
_FRACTION_PARTS = 2

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


# ── Errors ───────────────────────────────────────────────────────


class MalformedInputError(Exception):
    """Raised when a coverage document is missing, unreadable, or unparseable."""

    def __init__(self, path: Path | str, reason: str) -> None:
        """Initialize with the offending document and a description.

        Args:
            path: Path of the document that could not be read.
            reason: Human-readable description of the failure.
        """
        super().__init__(f"Malformed coverage document {path}: {reason}")
        self.path = path
        self.reason = reason


# ── Document interface ───────────────────────────────────────────


class CoverageSummaryDocument(ABC):
    """A coverage summary exposing one :class:`MetricBlock` per category."""

    @abstractmethod
    def metric_blocks(self) -> list[MetricBlock]:
        """Return the summary's metric blocks in document order."""


class IstanbulHtmlSummary(CoverageSummaryDocument):
    """Summary panel of an istanbul ``lcov-report/index.html`` page."""

    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html, "html.parser")

    @classmethod
    def from_file(cls, html_path: Path) -> IstanbulHtmlSummary:
        """Load the summary from *html_path*.

        Raises:
            MalformedInputError: If the file is missing, unreadable, or not UTF-8.
        """
        try:
            html = html_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise MalformedInputError(html_path, "file not found") from e
        except UnicodeDecodeError as e:
            raise MalformedInputError(html_path, f"not valid UTF-8 ({e.reason})") from e
        except OSError as e:
            raise MalformedInputError(html_path, str(e)) from e
        return cls(html)

    def metric_blocks(self) -> list[MetricBlock]:
        return [
            MetricBlock(
                name=_joined_text(item, _NAME_SELECTOR),
                percent_text=_joined_text(item, _PERCENT_SELECTOR),
                fraction_text=_joined_text(item, _FRACTION_SELECTOR),
            )
            for item in self._soup.select(_BLOCK_SELECTOR)
        ]


def _joined_text(item: Tag, selector: str) -> str:
    """Return the concatenated text of every *selector* match under *item*."""
    return "".join(match.get_text() for match in item.select(selector))


# ── Normalization ────────────────────────────────────────────────


def parse_leading_int(text: str) -> int | None:
    """Parse the integer at the start of *text*, ignoring trailing noise.

    Leading whitespace and a sign are accepted; parsing stops at the first
    non-digit, so ``"85%"`` yields ``85``. Returns None if no digits lead.
    """
    match = _LEADING_INT_RE.match(text)
    if match is None:
        return None
    return int(match.group(1))


def normalize(block: MetricBlock) -> NormalizedMetric | None:
    """Convert a block's ``covered/total`` fraction into a NormalizedMetric.

    Returns None when the fraction does not hold exactly one separator, a side
    does not parse, or the counts are inconsistent (negative or covered > total).
    """
    parts = block.fraction_text.strip().split(_FRACTION_SEPARATOR)
    if len(parts) != _FRACTION_PARTS:
        logger.warning(
            "Ignoring %s: fraction %r is not of the form covered/total",
            block.name,
            block.fraction_text,
        )
        return None

    covered = parse_leading_int(parts[0])
    total = parse_leading_int(parts[1])
    if covered is None or total is None:
        logger.warning("Ignoring %s: unparseable fraction %r", block.name, block.fraction_text)
        return None

    if covered < 0 or total < covered:
        logger.warning(
            "Ignoring %s: inconsistent counts covered=%d total=%d", block.name, covered, total
        )
        return None

    return NormalizedMetric(covered=covered, total=total)


def extract(document: CoverageSummaryDocument) -> dict[str, NormalizedMetric | None]:
    """Map each category name in *document* to its normalized counts.

    Every block yields an entry, keyed by its trimmed name. Blocks whose
    fraction cannot be normalized map to None.
    """
    metrics: dict[str, NormalizedMetric | None] = {}
    blocks = document.metric_blocks()
    if not blocks:
        logger.warning("Coverage summary contains no metric blocks")

    for block in blocks:
        name = block.name.strip()
        metrics[name] = normalize(block)
        logger.debug("Extracted %s: %s (%s)", name, metrics[name], block.percent_text.strip())

    return metrics


def load_metrics(coverage_dir: Path) -> dict[str, NormalizedMetric | None]:
    """Extract metrics from ``<coverage_dir>/lcov-report/index.html``.

    Raises:
        MalformedInputError: If the summary page cannot be read.
    """
    html_path = coverage_dir / SUMMARY_HTML_PATH
    logger.debug("Reading coverage summary from %s", html_path)
    return extract(IstanbulHtmlSummary.from_file(html_path))
