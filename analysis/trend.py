"""Trend chart models for coverage and software metrics.

A trend chart shows one x-axis point per build. Results are passed newest
first (the latest build is the head of the sequence); the produced model is in
chronological order. Series colors are symbolic theme tokens.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Final

from .metrics import DEFAULT_TREND_METRICS, Metric

DEFAULT_NUMBER_OF_BUILDS: Final[int] = 50

COVERAGE_SERIES_COLORS: Final[tuple[tuple[Metric, str], ...]] = (
    (Metric.LINE, "--green"),
    (Metric.BRANCH, "--dark-green"),
    (Metric.MUTATION, "--dark-green"),
    (Metric.TEST_STRENGTH, "--light-green"),
    (Metric.MCDC_PAIR, "--light-red"),
    (Metric.METHOD, "--red"),
    (Metric.FUNCTION_CALL, "--dark-red"),
)

CHART_COLOR_TOKENS: Final[tuple[str, ...]] = (
    "--blue",
    "--orange",
    "--purple",
    "--cyan",
    "--pink",
    "--brown",
    "--indigo",
    "--teal",
)


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Statistics of one build.

    Args:
        number: Build number.
        display_name: Label shown on the x-axis, e.g. `#42`.
        timestamp: Build start time.
        statistics: Metric tag to value (coverage values in percent).
    """

    number: int
    display_name: str
    timestamp: datetime
    statistics: Mapping[str, float]


@dataclass(frozen=True, slots=True)
class TrendConfiguration:
    """Request parameters of a trend chart, decoded from persisted JSON.

    Args:
        visible_metrics: Metrics the user selected.
        use_lines: Draw plain lines instead of filled areas.
        number_of_builds: Maximum number of builds; 0 or less means unlimited.
        number_of_days: Maximum age in days relative to the newest build; 0 or
            less means unlimited.
        build_as_domain: Label the x-axis with build names instead of dates.
    """

    visible_metrics: frozenset[Metric] = DEFAULT_TREND_METRICS
    use_lines: bool = False
    number_of_builds: int = DEFAULT_NUMBER_OF_BUILDS
    number_of_days: int = 0
    build_as_domain: bool = True

    @classmethod
    def from_json(cls, payload: Mapping[str, Any] | None) -> TrendConfiguration:
        """Decode a persisted configuration, falling back to defaults per key.

        The metric selection falls back to the default trend metrics when the
        `metrics` object is missing, empty or names an unknown metric.
        """

        payload = payload or {}
        return cls(
            visible_metrics=_visible_metrics(payload.get("metrics")),
            use_lines=payload.get("useLines") is True,
            number_of_builds=_parse_int(payload.get("numberOfBuilds"), DEFAULT_NUMBER_OF_BUILDS),
            number_of_days=_parse_int(payload.get("numberOfDays"), 0),
            build_as_domain=payload.get("buildAsDomain") is not False,
        )


def _visible_metrics(raw: object) -> frozenset[Metric]:
    if not isinstance(raw, Mapping) or not raw:
        return DEFAULT_TREND_METRICS
    try:
        return frozenset(Metric.from_tag(tag) for tag, checked in raw.items() if checked is True)
    except ValueError:
        return DEFAULT_TREND_METRICS


def _parse_int(value: object, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(str(value))
    except ValueError:
        return default


@dataclass(slots=True)
class LinesDataSet:
    """Chronological x-axis labels and one value list per metric tag."""

    domain_axis_labels: list[str] = field(default_factory=list)
    build_numbers: list[int] = field(default_factory=list)
    series: dict[str, list[float | None]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.domain_axis_labels

    def contains(self, metric: Metric) -> bool:
        return metric.tag in self.series

    def values(self) -> list[float]:
        return [value for values in self.series.values() for value in values if value is not None]

    def minimum(self) -> float:
        return min(self.values(), default=0.0)

    def maximum(self) -> float:
        return max(self.values(), default=0.0)


def create_data_set(
    results: Iterable[BuildResult],
    configuration: TrendConfiguration,
    *,
    coverage: bool,
) -> LinesDataSet:
    """Collect the x-axis points of a trend chart.

    Args:
        results: Build results, newest first.
        configuration: Build and day limits plus the domain axis mode.
        coverage: True to collect coverage metrics, False for software metrics.

    Returns:
        LinesDataSet in chronological order.
    """

    selected: list[BuildResult] = []
    newest: datetime | None = None
    for result in results:
        if 0 < configuration.number_of_builds <= len(selected):
            break
        if newest is None:
            newest = result.timestamp
        elif configuration.number_of_days > 0 and newest - result.timestamp > timedelta(days=configuration.number_of_days):
            break
        selected.append(result)
    selected.reverse()

    tags: list[str] = []
    for metric in Metric:
        if metric.is_coverage != coverage:
            continue
        if any(metric.tag in result.statistics for result in selected):
            tags.append(metric.tag)

    data_set = LinesDataSet()
    for result in selected:
        if configuration.build_as_domain:
            data_set.domain_axis_labels.append(result.display_name)
        else:
            data_set.domain_axis_labels.append(result.timestamp.date().isoformat())
        data_set.build_numbers.append(result.number)
    for tag in tags:
        data_set.series[tag] = [_round(result.statistics.get(tag)) for result in selected]
    return data_set


def _round(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return round(float(value), 2)


@dataclass(frozen=True, slots=True)
class LineSeries:
    """One line of a trend chart."""

    name: str
    tag: str
    color: str
    filled: bool
    data: list[float | None]


@dataclass(slots=True)
class LinesChartModel:
    """Renderer-independent model of a trend chart."""

    domain_axis_labels: list[str]
    build_numbers: list[int]
    series: list[LineSeries] = field(default_factory=list)
    range_min: float | None = None
    range_max: float | None = None

    @property
    def is_empty(self) -> bool:
        return not self.series


def create_coverage_trend(results: Sequence[BuildResult], configuration: TrendConfiguration) -> LinesChartModel:
    """Build the coverage trend: percentages on a `[min, 100]` axis.

    Areas are filled unless the configuration asks for lines or the data
    contains MC/DC pair or function call coverage.
    """

    data_set = create_data_set(results, configuration, coverage=True)
    model = LinesChartModel(data_set.domain_axis_labels, data_set.build_numbers)
    if data_set.is_empty:
        return model

    model.range_max = 100.0
    model.range_min = data_set.minimum()
    filled = not (
        configuration.use_lines or data_set.contains(Metric.MCDC_PAIR) or data_set.contains(Metric.FUNCTION_CALL)
    )
    for metric, color in COVERAGE_SERIES_COLORS:
        if metric in configuration.visible_metrics and data_set.contains(metric):
            model.series.append(
                LineSeries(metric.display_name, metric.tag, color, filled, data_set.series[metric.tag])
            )
    return model


def create_metrics_trend(results: Sequence[BuildResult], configuration: TrendConfiguration) -> LinesChartModel:
    """Build the software metrics trend: one palette color per metric, lines only."""

    data_set = create_data_set(results, configuration, coverage=False)
    model = LinesChartModel(data_set.domain_axis_labels, data_set.build_numbers)
    if data_set.is_empty:
        return model

    model.range_max = data_set.maximum()
    model.range_min = data_set.minimum()
    color_index = 0
    for tag, values in data_set.series.items():
        metric = Metric.from_tag(tag)
        if metric not in configuration.visible_metrics:
            continue
        color = CHART_COLOR_TOKENS[color_index % len(CHART_COLOR_TOKENS)]
        color_index += 1
        model.series.append(LineSeries(metric.display_name, tag, color, False, values))
    return model


def create_trend_chart(
    results: Sequence[BuildResult],
    configuration: TrendConfiguration,
    *,
    metrics_chart: bool,
) -> LinesChartModel:
    """Create the coverage or metrics trend for the given results.

    Projects whose newest build carries no coverage metric always get the
    metrics trend.
    """

    has_coverage = not results or any(
        Metric.from_tag(tag).is_coverage for tag in results[0].statistics if _is_metric_tag(tag)
    )
    if metrics_chart or not has_coverage:
        return create_metrics_trend(results, configuration)
    return create_coverage_trend(results, configuration)


def _is_metric_tag(tag: str) -> bool:
    try:
        Metric.from_tag(tag)
    except ValueError:
        return False
    return True
