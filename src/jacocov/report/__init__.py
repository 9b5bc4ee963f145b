"""Istanbul HTML summary to JaCoCo XML translation."""

from jacocov.report.extractor import (
    CoverageSummaryDocument,
    IstanbulHtmlSummary,
    MalformedInputError,
    extract,
    load_metrics,
)
from jacocov.report.jacoco import emit, read_counters, write_report
from jacocov.report.models import CANONICAL_CATEGORIES, MetricBlock, NormalizedMetric

__all__ = [
    "CANONICAL_CATEGORIES",
    "CoverageSummaryDocument",
    "IstanbulHtmlSummary",
    "MalformedInputError",
    "MetricBlock",
    "NormalizedMetric",
    "emit",
    "extract",
    "load_metrics",
    "read_counters",
    "write_report",
]
