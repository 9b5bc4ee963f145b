"""jacocov: run tests under istanbul coverage and emit a JaCoCo summary."""

__version__ = "0.1.0"
