"""
Exception types raised by the surveillance engine.

- InvalidRangeError: caller supplied an inverted, unparseable or oversized range
- FetchError: the persistence collaborator failed to return rows
- InconsistentMetricsError: the assembled payload violates an internal invariant
"""


class InvalidRangeError(ValueError):
    """Raised when a requested report window cannot be evaluated."""


class FetchError(RuntimeError):
    """Raised when upstream case rows could not be retrieved."""


class InconsistentMetricsError(ValueError):
    """Raised when coverage and summary figures contradict each other."""
