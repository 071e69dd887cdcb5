"""Error taxonomy for the analysis engine.

Every error is scoped to a single statistic, field or bucket. Callers catch
them per computation so that one degenerate field never aborts its siblings.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for recoverable analysis conditions."""


class EmptyInputError(AnalysisError):
    """Raised when there are no readings (or no values) to analyze."""


class DegenerateVarianceError(AnalysisError):
    """Raised when a field has zero variance and a shape statistic is undefined."""


class ZeroVarianceError(DegenerateVarianceError):
    """Raised when a correlation input is constant across the collection."""


class DivisionByZeroError(AnalysisError, ZeroDivisionError):
    """Raised when a growth computation divides by a zero-valued prior bucket."""


class UnparsableTimestampError(AnalysisError, ValueError):
    """Raised when a timestamp does not match the fixed reading format."""
