"""Metric catalogue shared by tree maps, overviews and trend charts.

Metrics fall into two families:
- coverage metrics (line, branch, mutation, ...) carry covered/missed counts and
  are charted as percentages,
- software metrics (LOC, complexity, tests, ...) carry plain numbers.

Tag names are the stable identifiers used in stored statistics, persisted chart
configuration and checkbox names.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class Tendency(Enum):
    """Whether larger or smaller values of a metric are preferable."""

    LARGER_IS_BETTER = "LARGER_IS_BETTER"
    SMALLER_IS_BETTER = "SMALLER_IS_BETTER"


class Metric(Enum):
    """A coverage or software metric.

    Each member value is a tuple of (display name, is coverage, tendency).
    """

    MODULE = ("Module Coverage", True, Tendency.LARGER_IS_BETTER)
    PACKAGE = ("Package Coverage", True, Tendency.LARGER_IS_BETTER)
    FILE = ("File Coverage", True, Tendency.LARGER_IS_BETTER)
    CLASS = ("Class Coverage", True, Tendency.LARGER_IS_BETTER)
    METHOD = ("Method Coverage", True, Tendency.LARGER_IS_BETTER)
    LINE = ("Line Coverage", True, Tendency.LARGER_IS_BETTER)
    BRANCH = ("Branch Coverage", True, Tendency.LARGER_IS_BETTER)
    INSTRUCTION = ("Instruction Coverage", True, Tendency.LARGER_IS_BETTER)
    MCDC_PAIR = ("MC/DC Pair Coverage", True, Tendency.LARGER_IS_BETTER)
    FUNCTION_CALL = ("Function Call Coverage", True, Tendency.LARGER_IS_BETTER)
    MUTATION = ("Mutation Coverage", True, Tendency.LARGER_IS_BETTER)
    TEST_STRENGTH = ("Test Strength", True, Tendency.LARGER_IS_BETTER)

    TESTS = ("Number of Tests", False, Tendency.LARGER_IS_BETTER)
    LOC = ("Lines of Code", False, Tendency.SMALLER_IS_BETTER)
    NCSS = ("Non Commenting Source Statements", False, Tendency.SMALLER_IS_BETTER)
    CYCLOMATIC_COMPLEXITY = ("Cyclomatic Complexity", False, Tendency.SMALLER_IS_BETTER)
    COGNITIVE_COMPLEXITY = ("Cognitive Complexity", False, Tendency.SMALLER_IS_BETTER)
    NPATH_COMPLEXITY = ("N-Path Complexity", False, Tendency.SMALLER_IS_BETTER)
    COMPLEXITY_DENSITY = ("Complexity Density", False, Tendency.SMALLER_IS_BETTER)

    @property
    def display_name(self) -> str:
        """Human-friendly label used in legends and dialogs."""

        return self.value[0]

    @property
    def is_coverage(self) -> bool:
        """Return True for coverage metrics (covered/missed percentages)."""

        return self.value[1]

    @property
    def tendency(self) -> Tendency:
        """Return the preferred direction of the metric."""

        return self.value[2]

    @property
    def larger_is_better(self) -> bool:
        return self.tendency is Tendency.LARGER_IS_BETTER

    @property
    def tag(self) -> str:
        """Return the stable tag name, e.g. `test-strength`."""

        return self.name.lower().replace("_", "-")

    @classmethod
    def from_tag(cls, tag: str) -> Metric:
        """Parse a metric from a tag name or an enum name.

        Both `test-strength` and `TEST_STRENGTH` are accepted.

        Raises:
            ValueError: When the tag does not name a metric.
        """

        normalized = str(tag).strip().upper().replace("-", "_")
        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Unknown metric tag: {tag!r}") from None


DEFAULT_TREND_METRICS: frozenset[Metric] = frozenset(
    {
        Metric.LINE,
        Metric.BRANCH,
        Metric.MUTATION,
        Metric.TEST_STRENGTH,
        Metric.NCSS,
        Metric.LOC,
        Metric.CYCLOMATIC_COMPLEXITY,
        Metric.COGNITIVE_COMPLEXITY,
    }
)

# Structural metrics carry no useful trend.
IGNORED_TREND_METRICS: frozenset[Metric] = frozenset({Metric.MODULE})


def parse_metrics(tags: Iterable[str]) -> tuple[Metric, ...]:
    """Parse tag names into metrics, silently skipping unknown tags.

    Args:
        tags: Tag or enum names.

    Returns:
        Metrics in input order, without duplicates.
    """

    parsed: list[Metric] = []
    for tag in tags:
        try:
            metric = Metric.from_tag(tag)
        except ValueError:
            continue
        if metric not in parsed:
            parsed.append(metric)
    return tuple(parsed)
