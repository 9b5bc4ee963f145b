"""Reporters for displaying coverage conversion results."""

from __future__ import annotations

from jacocov.reporters.terminal import CLIReporter, reporter

__all__ = [
    "CLIReporter",
    "reporter",
]
