"""Unit tests for coverage and metrics trend models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from analysis.metrics import DEFAULT_TREND_METRICS, Metric
from analysis.trend import (
    BuildResult,
    TrendConfiguration,
    create_coverage_trend,
    create_data_set,
    create_metrics_trend,
    create_trend_chart,
)

pytestmark = pytest.mark.unit

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _results(*statistics: dict[str, float], spacing_days: int = 1) -> list[BuildResult]:
    """Return results newest first for statistics given oldest first."""

    results = [
        BuildResult(
            number=index + 1,
            display_name=f"#{index + 1}",
            timestamp=START + timedelta(days=index * spacing_days),
            statistics=values,
        )
        for index, values in enumerate(statistics)
    ]
    return list(reversed(results))


HISTORY = _results(
    {"line": 70.0, "branch": 50.0, "loc": 250},
    {"line": 72.4567, "branch": 55.0, "loc": 280},
    {"line": 75.0, "branch": 60.0, "loc": 300, "tests": 12},
)


def test_configuration_defaults_for_missing_or_invalid_metrics() -> None:
    assert TrendConfiguration.from_json(None).visible_metrics == DEFAULT_TREND_METRICS
    assert TrendConfiguration.from_json({"metrics": {}}).visible_metrics == DEFAULT_TREND_METRICS
    assert TrendConfiguration.from_json({"metrics": {"bogus": True}}).visible_metrics == DEFAULT_TREND_METRICS
    assert TrendConfiguration.from_json({"metrics": ["line"]}).visible_metrics == DEFAULT_TREND_METRICS


def test_configuration_reads_selection_and_flags() -> None:
    configuration = TrendConfiguration.from_json(
        {
            "metrics": {"line": True, "branch": False},
            "useLines": True,
            "numberOfBuilds": "5",
            "numberOfDays": 3,
            "buildAsDomain": False,
        }
    )

    assert configuration.visible_metrics == frozenset({Metric.LINE})
    assert configuration.use_lines is True
    assert configuration.number_of_builds == 5
    assert configuration.number_of_days == 3
    assert configuration.build_as_domain is False


def test_configuration_only_accepts_boolean_true_for_lines() -> None:
    assert TrendConfiguration.from_json({"useLines": "true"}).use_lines is False
    assert TrendConfiguration.from_json({"buildAsDomain": "no"}).build_as_domain is True
    assert TrendConfiguration.from_json({"numberOfBuilds": "many"}).number_of_builds == 50


def test_data_set_is_chronological_and_rounded() -> None:
    data_set = create_data_set(HISTORY, TrendConfiguration(), coverage=True)

    assert data_set.domain_axis_labels == ["#1", "#2", "#3"]
    assert data_set.build_numbers == [1, 2, 3]
    assert data_set.series == {"line": [70.0, 72.46, 75.0], "branch": [50.0, 55.0, 60.0]}


def test_data_set_honors_build_limit() -> None:
    data_set = create_data_set(HISTORY, TrendConfiguration(number_of_builds=2), coverage=True)

    assert data_set.build_numbers == [2, 3]


def test_data_set_honors_day_limit_and_date_domain() -> None:
    results = _results({"line": 1.0}, {"line": 2.0}, {"line": 3.0}, spacing_days=5)

    data_set = create_data_set(results, TrendConfiguration(number_of_days=7, build_as_domain=False), coverage=True)

    assert data_set.build_numbers == [2, 3]
    assert data_set.domain_axis_labels == ["2026-01-06", "2026-01-11"]


def test_missing_values_become_gaps() -> None:
    data_set = create_data_set(HISTORY, TrendConfiguration(), coverage=False)

    assert data_set.series["tests"] == [None, None, 12.0]


def test_coverage_trend_is_filled_on_zero_to_hundred_axis() -> None:
    model = create_coverage_trend(HISTORY, TrendConfiguration())

    assert model.range_max == 100.0
    assert model.range_min == 50.0
    assert [(line.tag, line.color, line.filled) for line in model.series] == [
        ("line", "--green", True),
        ("branch", "--dark-green", True),
    ]


def test_coverage_trend_uses_lines_when_requested() -> None:
    model = create_coverage_trend(HISTORY, TrendConfiguration(use_lines=True))

    assert {line.filled for line in model.series} == {False}


def test_mcdc_coverage_forces_lines() -> None:
    results = _results({"line": 80.0, "mcdc-pair": 40.0})

    model = create_coverage_trend(results, TrendConfiguration(visible_metrics=frozenset(Metric)))

    assert [(line.tag, line.filled) for line in model.series] == [("line", False), ("mcdc-pair", False)]


def test_coverage_trend_only_shows_visible_metrics() -> None:
    model = create_coverage_trend(HISTORY, TrendConfiguration(visible_metrics=frozenset({Metric.BRANCH})))

    assert [line.tag for line in model.series] == ["branch"]


def test_metrics_trend_assigns_palette_colors() -> None:
    configuration = TrendConfiguration(visible_metrics=frozenset({Metric.LOC, Metric.TESTS}))

    model = create_metrics_trend(HISTORY, configuration)

    assert [(line.tag, line.color, line.filled) for line in model.series] == [
        ("tests", "--blue", False),
        ("loc", "--orange", False),
    ]
    assert model.range_max == 300.0


def test_empty_history_gives_empty_model() -> None:
    model = create_trend_chart([], TrendConfiguration(), metrics_chart=False)

    assert model.is_empty
    assert model.range_max is None


def test_projects_without_coverage_get_metrics_trend() -> None:
    results = _results({"loc": 10, "ncss": 4})

    model = create_trend_chart(results, TrendConfiguration(), metrics_chart=False)

    assert [line.tag for line in model.series] == ["loc", "ncss"]
