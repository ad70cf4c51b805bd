"""Unit tests for converting coverage reports into tree map nodes."""

from __future__ import annotations

import pytest

from analysis.metrics import Metric
from analysis.treemap import (
    COVERAGE_NOT_AVAILABLE,
    INNER_BORDER_WIDTH,
    LABEL_BLACK,
    CoverageTreeNode,
    ReportNode,
    TreeMapNodeConverter,
    collapse_empty_packages,
    coverage_level_color,
)

pytestmark = pytest.mark.unit


def test_converter_skips_module_and_collapses_package_chain(report_tree) -> None:
    """The single module becomes the root and `com` → `example` collapses to `com.example`."""

    root = TreeMapNodeConverter().to_tree_chart_model(ReportNode.from_json(report_tree), Metric.LINE)

    assert root.name == "core"
    assert [child.name for child in root.children] == ["com.example"]
    package = root.children[0]
    assert package.id == "core/com/example"
    assert [child.name for child in package.children] == ["Main.java", "Util.java"]


def test_multi_module_reports_keep_package_names() -> None:
    """Packages are only split when a single module remains after skipping."""

    line = {"line": {"covered": 1, "missed": 1}}

    def file(name: str) -> dict:
        return {"name": name, "kind": "file", "values": line}

    report = ReportNode.from_json(
        {
            "name": "project",
            "kind": "container",
            "values": line,
            "children": [
                {
                    "name": "m1",
                    "kind": "module",
                    "values": line,
                    "children": [
                        {"name": "a.b", "kind": "package", "values": line, "children": [file("X.java")]},
                        {"name": "a.c", "kind": "package", "values": line, "children": [file("Y.java")]},
                    ],
                },
                {"name": "m2", "kind": "module", "values": line, "children": [file("Z.java"), file("W.java")]},
            ],
        }
    )

    root = TreeMapNodeConverter().to_tree_chart_model(report, Metric.LINE)

    assert root.name == "project"
    m1, m2 = root.children
    assert m1.name == "m1"
    assert [child.name for child in m1.children] == ["a.b", "a.c"]
    assert m1.children[0].id == "project/m1/a.b"
    assert [child.name for child in m2.children] == ["Z.java", "W.java"]


def test_coverage_values_and_level_fills(report_tree) -> None:
    root = TreeMapNodeConverter().to_tree_chart_model(ReportNode.from_json(report_tree), Metric.LINE)
    main, util = root.children[0].children

    assert root.value == ("20", "Line Coverage: 75.00% (15/20)")
    assert main.value == ("10", "Line Coverage: 100.00% (10/10)")
    assert main.item_style.color == "--coverage-excellent"
    assert main.item_style.border_width is None
    assert util.item_style.color == "--coverage-insufficient"
    assert root.item_style.border_color == root.item_style.color
    assert root.item_style.border_width == INNER_BORDER_WIDTH


def test_label_color_follows_resolved_fill() -> None:
    report = ReportNode(name="Dark.java", kind="file", values={"line": {"covered": 10, "missed": 0}})

    node = TreeMapNodeConverter({"--coverage-excellent": "#0a6b2c"}).to_tree_chart_model(report, Metric.LINE)
    fallback = TreeMapNodeConverter().to_tree_chart_model(report, Metric.LINE)

    assert node.label.color == "--white"
    assert fallback.label.color == LABEL_BLACK


def test_software_metric_nodes_get_fixed_fill(report_tree) -> None:
    report = ReportNode.from_json(report_tree)

    loc = TreeMapNodeConverter().to_tree_chart_model(report, Metric.LOC)
    tests = TreeMapNodeConverter().to_tree_chart_model(report, Metric.TESTS)

    assert loc.item_style.color == "--orange"
    assert loc.value == ("300", "Lines of Code: 300")
    assert tests.children[0].children[0].item_style.color == "--light-green"


def test_nodes_without_the_metric_are_dropped() -> None:
    report = ReportNode(
        name="root",
        kind="directory",
        values={"branch": {"covered": 1, "missed": 1}},
        children=(
            ReportNode(name="a.c", kind="file", values={"branch": {"covered": 1, "missed": 1}}),
            ReportNode(name="b.c", kind="file", values={"line": {"covered": 1, "missed": 0}}),
        ),
    )

    root = TreeMapNodeConverter().to_tree_chart_model(report, Metric.BRANCH)

    assert [child.name for child in root.children] == ["a.c"]


def test_empty_coverage_is_not_available() -> None:
    report = ReportNode(name="Empty.java", kind="file", values={"branch": {"covered": 0, "missed": 0}})

    node = TreeMapNodeConverter().to_tree_chart_model(report, Metric.BRANCH)

    assert node.item_style.color == COVERAGE_NOT_AVAILABLE
    assert node.value == ("0", "Branch Coverage: n/a")


@pytest.mark.parametrize(
    ("percentage", "token"),
    [(100.0, "--coverage-excellent"), (90.0, "--coverage-very-good"), (49.9, "--coverage-bad"), (None, "--coverage-na")],
)
def test_coverage_level_color(percentage, token) -> None:
    assert coverage_level_color(percentage) == token


def test_collapse_keeps_branching_nodes() -> None:
    tree = CoverageTreeNode(
        name="a",
        children=[
            CoverageTreeNode(
                name="b",
                children=[CoverageTreeNode(name="x.py"), CoverageTreeNode(name="y.py")],
            )
        ],
    )

    collapse_empty_packages(tree)

    assert tree.name == "a.b"
    assert [child.name for child in tree.children] == ["x.py", "y.py"]


def test_to_json_uses_echarts_keys() -> None:
    node = TreeMapNodeConverter().to_tree_chart_model(
        ReportNode(name="dir", kind="directory", values={"loc": 3}, children=(ReportNode("f", "file", {"loc": 3}),)),
        Metric.LOC,
    )

    payload = node.to_json()

    assert payload["itemStyle"] == {"color": "--orange", "borderColor": "--orange", "borderWidth": INNER_BORDER_WIDTH}
    assert payload["upperLabel"] == {"show": True, "color": LABEL_BLACK}
    assert payload["children"][0]["children"] == []
