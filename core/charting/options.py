"""ECharts option builders.

Builders return JSON-serializable dictionaries that still contain symbolic
color tokens (`--green`, `--text-color`, ...). `apply_theme` replaces the
tokens with the resolved hex values of the active theme right before a draw.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from analysis.colors import ColorMapping, apply_theme
from analysis.metrics import Metric
from analysis.trend import LinesChartModel
from analysis.treemap import CoverageTreeNode

TEXT_COLOR: Final[str] = "--text-color"
BREADCRUMB_COLOR: Final[str] = "#A4A4A4"
TREEMAP_LEVEL_COUNT: Final[int] = 10
OVERVIEW_ROW_HEIGHT: Final[int] = 31
OVERVIEW_BASE_HEIGHT: Final[int] = 150


@dataclass(frozen=True, slots=True)
class CoverageOverview:
    """Covered and missed counts of the coverage metrics of one build."""

    metrics: tuple[str, ...] = ()
    covered: tuple[int, ...] = ()
    missed: tuple[int, ...] = ()
    covered_percentages: tuple[float, ...] = field(default=())
    missed_percentages: tuple[float, ...] = field(default=())

    @classmethod
    def from_counts(cls, counts: Mapping[str, Any]) -> CoverageOverview:
        """Build the overview from `{tag: {"covered": int, "missed": int}}`.

        Metrics are ordered as in the metric catalogue; the module level and
        metrics without any counted element are left out.
        """

        metrics: list[str] = []
        covered: list[int] = []
        missed: list[int] = []
        covered_percentages: list[float] = []
        missed_percentages: list[float] = []
        for metric in Metric:
            if not metric.is_coverage or metric is Metric.MODULE:
                continue
            entry = counts.get(metric.tag)
            if not isinstance(entry, Mapping):
                continue
            hit = _count(entry.get("covered"))
            miss = _count(entry.get("missed"))
            total = hit + miss
            if total == 0:
                continue
            metrics.append(metric.display_name)
            covered.append(hit)
            missed.append(miss)
            covered_percentages.append(round(hit * 100.0 / total, 2))
            missed_percentages.append(round(miss * 100.0 / total, 2))
        return cls(
            tuple(metrics),
            tuple(covered),
            tuple(missed),
            tuple(covered_percentages),
            tuple(missed_percentages),
        )

    @property
    def is_empty(self) -> bool:
        return not self.metrics


def _count(raw: object) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return 0
    return max(int(raw), 0)


def treemap_option(tree: CoverageTreeNode, metric: Metric) -> dict[str, Any]:
    """Build the tree map option for one metric.

    Args:
        tree: Converted (and, for software metrics, colorized) tree.
        metric: Metric shown by the tree map.

    Returns:
        ECharts option with a single `treemap` series.
    """

    levels: list[dict[str, Any]] = [
        {"itemStyle": {"borderWidth": 0, "gapWidth": 5}, "upperLabel": {"show": False}},
        {"itemStyle": {"gapWidth": 3}},
    ]
    levels.extend({"itemStyle": {"gapWidth": 1}} for _ in range(TREEMAP_LEVEL_COUNT - len(levels)))
    return {
        "tooltip": {"formatter": "{c}"},
        "series": [
            {
                "name": metric.display_name,
                "type": "treemap",
                "breadcrumb": {
                    "itemStyle": {"color": BREADCRUMB_COLOR},
                    "emphasis": {"itemStyle": {"opacity": 0.6}},
                },
                "width": "100%",
                "height": "100%",
                "top": "top",
                "label": {"show": True, "formatter": "{b}"},
                "upperLabel": {"show": True, "height": 30},
                "itemStyle": {"shadowColor": "#000", "shadowBlur": 3},
                "levels": levels,
                "data": [tree.to_json()],
            }
        ],
    }


def overview_option(overview: CoverageOverview) -> dict[str, Any]:
    """Build the stacked covered/missed bar chart of the coverage overview."""

    def bar(name: str, color: str, position: str, data: tuple[float, ...], labels: tuple[int, ...]) -> dict[str, Any]:
        return {
            "name": name,
            "type": "bar",
            "stack": "sum",
            "itemStyle": {"color": color},
            "emphasis": {"itemStyle": {"color": "inherit"}},
            "label": {
                "show": True,
                "position": position,
                "color": "--white",
                "fontWeight": "bold",
            },
            "labels": list(labels),
            "data": list(data),
        }

    return {
        "height": len(overview.metrics) * OVERVIEW_ROW_HEIGHT + OVERVIEW_BASE_HEIGHT,
        "tooltip": {"trigger": "axis", "axisPointer": {"type": "shadow"}},
        "legend": {"data": ["Covered", "Missed"], "x": "center", "y": "top", "textStyle": {"color": TEXT_COLOR}},
        "grid": {"left": "20", "right": "10", "bottom": "5", "top": "40", "containLabel": True},
        "xAxis": {"type": "value", "axisLabel": {"color": TEXT_COLOR}},
        "yAxis": [
            {
                "type": "category",
                "data": list(overview.metrics),
                "axisLine": {"show": False},
                "axisTick": {"show": False},
                "axisLabel": {"color": TEXT_COLOR},
            },
            {
                "type": "category",
                "data": list(overview.covered_percentages),
                "position": "right",
                "axisLine": {"show": False},
                "axisTick": {"show": False},
                "axisLabel": {"color": TEXT_COLOR},
            },
        ],
        "series": [
            bar("Covered", "--green", "insideLeft", overview.covered_percentages, overview.covered),
            bar("Missed", "--red", "insideRight", overview.missed_percentages, overview.missed),
        ],
    }


def trend_option(model: LinesChartModel) -> dict[str, Any]:
    """Build a zoomable line chart from a trend model.

    Filled series get an `areaStyle`; the y-axis range follows the model.
    """

    y_axis: dict[str, Any] = {"type": "value", "axisLabel": {"color": TEXT_COLOR}}
    if model.range_min is not None:
        y_axis["min"] = model.range_min
    if model.range_max is not None:
        y_axis["max"] = model.range_max

    series: list[dict[str, Any]] = []
    for line in model.series:
        entry: dict[str, Any] = {
            "name": line.name,
            "id": line.tag,
            "type": "line",
            "symbol": "circle",
            "itemStyle": {"color": line.color},
            "data": list(line.data),
        }
        if line.filled:
            entry["areaStyle"] = {"normal": {}}
        series.append(entry)

    return {
        "tooltip": {"trigger": "axis"},
        "legend": {"data": [line.name for line in model.series], "textStyle": {"color": TEXT_COLOR}},
        "grid": {"left": "20", "right": "10", "bottom": "30", "top": "40", "containLabel": True},
        "dataZoom": [{"type": "inside"}, {"type": "slider", "height": 25, "bottom": 5}],
        "xAxis": {
            "type": "category",
            "boundaryGap": False,
            "data": list(model.domain_axis_labels),
            "axisLabel": {"color": TEXT_COLOR},
        },
        "yAxis": y_axis,
        "buildNumbers": list(model.build_numbers),
        "series": series,
    }


def themed(option: dict[str, Any], mapping: ColorMapping) -> dict[str, Any]:
    """Return a copy of `option` with resolved theme colors."""

    return apply_theme(option, mapping)
