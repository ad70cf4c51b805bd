"""Pytest fixtures shared across unit and Django integration tests."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from analysis.colors import ColorResolver
from analysis.treemap import CoverageTreeNode

LIGHT_TOKENS = {
    "--black": "#000000",
    "--white": "#ffffff",
    "--red": "#e6001f",
    "--green": "#1ea64b",
    "--yellow": "#ffcc00",
    "--orange": "#fe8200",
    "--light-green": "#79d17f",
    "--error-color": "var(--red)",
    "--success-color": "var(--green)",
    "--text-color": "var(--black)",
}

REPORT_TREE = {
    "name": "project",
    "kind": "container",
    "values": {"line": {"covered": 15, "missed": 5}, "loc": 300, "tests": 12},
    "children": [
        {
            "name": "core",
            "kind": "module",
            "values": {"line": {"covered": 15, "missed": 5}, "loc": 300, "tests": 12},
            "children": [
                {
                    "name": "com.example",
                    "kind": "package",
                    "values": {"line": {"covered": 15, "missed": 5}, "loc": 300, "tests": 12},
                    "children": [
                        {
                            "name": "Main.java",
                            "kind": "file",
                            "values": {"line": {"covered": 10, "missed": 0}, "loc": 100, "tests": 4},
                        },
                        {
                            "name": "Util.java",
                            "kind": "file",
                            "values": {"line": {"covered": 5, "missed": 5}, "loc": 200, "tests": 8},
                        },
                    ],
                }
            ],
        }
    ],
}


@pytest.fixture
def light_mapping():
    """Return the resolved mapping of a small light token table."""

    return ColorResolver(LIGHT_TOKENS).resolve_batch(LIGHT_TOKENS)


@pytest.fixture
def scenario_tree() -> CoverageTreeNode:
    """Return the root/a/b tree used by the colorization scenarios."""

    return CoverageTreeNode.from_json(
        {
            "name": "root",
            "value": [10, "10%"],
            "children": [
                {"name": "a", "value": [4, "40%"], "children": []},
                {"name": "b", "value": [6, "60%"], "children": []},
            ],
        }
    )


@pytest.fixture
def report_tree() -> dict:
    """Return a report hierarchy with one module, one dotted package and two files."""

    return REPORT_TREE


@pytest.fixture
def coverage_builds(db, report_tree):
    """Create three builds of job `demo`, newest last."""

    from core.models import CoverageBuild

    started = datetime(2026, 3, 1, tzinfo=timezone.utc)
    builds = []
    for offset, (line, branch, loc) in enumerate([(70.0, 50.0, 250), (72.5, 55.0, 280), (75.0, 60.0, 300)]):
        builds.append(
            CoverageBuild.objects.create(
                job="demo",
                number=offset + 1,
                created_at=started + timedelta(days=offset),
                statistics={"line": line, "branch": branch, "loc": loc, "tests": 12},
                coverage={
                    "module": {"covered": 1, "missed": 0},
                    "line": {"covered": 15, "missed": 5},
                    "branch": {"covered": 6, "missed": 4},
                },
                report_tree=report_tree,
            )
        )
    return builds


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    The suite is runnable by intent:
    - `unit`: pure, fast tests with no database access.
    - `integration`: tests touching Django, database, views, or IO.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
