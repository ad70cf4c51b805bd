"""Unit tests for the metric catalogue."""

from __future__ import annotations

import pytest

from analysis.metrics import Metric, parse_metrics

pytestmark = pytest.mark.unit


def test_tags_are_lowercase_with_hyphens() -> None:
    assert Metric.TEST_STRENGTH.tag == "test-strength"
    assert Metric.LINE.tag == "line"


@pytest.mark.parametrize("tag", ["test-strength", "TEST_STRENGTH", " Test-Strength "])
def test_from_tag_accepts_tag_and_enum_names(tag) -> None:
    assert Metric.from_tag(tag) is Metric.TEST_STRENGTH


def test_from_tag_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        Metric.from_tag("coolness")


def test_tendency_and_family() -> None:
    assert Metric.LINE.is_coverage and Metric.LINE.larger_is_better
    assert not Metric.LOC.is_coverage and not Metric.LOC.larger_is_better
    assert Metric.TESTS.larger_is_better


def test_parse_metrics_skips_unknown_and_duplicates() -> None:
    assert parse_metrics(["line", "bogus", "LINE", "loc"]) == (Metric.LINE, Metric.LOC)
