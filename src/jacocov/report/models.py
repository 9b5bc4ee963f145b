"""Data models for the coverage summary translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass

CANONICAL_CATEGORIES = ("Statements", "Branches", "Functions", "Lines")
"""Metric categories the istanbul summary panel reports."""


@dataclass(frozen=True)
class MetricBlock:
    """One named coverage category as it appears in the summary document."""

    name: str
    """Category label, e.g. ``Statements``."""

    percent_text: str
    """Display percentage (e.g. ``"85.71% "``); not used for conversion."""

    fraction_text: str
    """Raw ``"<covered>/<total>"`` string."""


@dataclass(frozen=True)
class NormalizedMetric:
    """Covered/total counts for one category."""

    covered: int
    total: int

    @property
    def missed(self) -> int:
        """Return the number of uncovered items."""
        return self.total - self.covered

    @property
    def percentage(self) -> float:
        """Return coverage as a percentage (0.0-100.0); an empty category is 100%."""
        if self.total == 0:
            return 100.0
        return (self.covered / self.total) * 100.0
