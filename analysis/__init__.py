"""Pure analysis package for coverageCharts.

This package contains deterministic, testable computations that operate on
in-memory inputs: color resolution, tree map conversion and colorization, and
trend chart models. It must not import Django or perform any database I/O.
"""

from .treemap import colorize

__all__ = ["colorize"]
