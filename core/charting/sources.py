"""Chart data read from stored coverage builds."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from asgiref.sync import sync_to_async

from analysis.trend import BuildResult
from analysis.treemap import ReportNode
from core.models import CoverageBuild

from .options import CoverageOverview

logger = logging.getLogger(__name__)


class BuildHistoryDataSource:
    """Serve chart data of one job from `CoverageBuild` rows.

    Args:
        job: Job whose builds are read.
        build: Build number for the overview and tree maps; the latest build
            when omitted.
    """

    def __init__(self, job: str, *, build: int | None = None) -> None:
        self.job = job
        self.build = build

    def _selected_build(self) -> CoverageBuild | None:
        builds = CoverageBuild.objects.filter(job=self.job)
        if self.build is not None:
            builds = builds.filter(number=self.build)
        return builds.order_by("-number").first()

    def latest_report(self) -> ReportNode | None:
        build = self._selected_build()
        if build is None or not build.report_tree:
            return None
        return ReportNode.from_json(build.report_tree)

    def overview(self) -> CoverageOverview | None:
        build = self._selected_build()
        if build is None:
            return None
        return CoverageOverview.from_counts(build.coverage or {})

    def results(self, limit: int | None) -> list[BuildResult]:
        """Return build results newest first, at most `limit` when given."""

        builds = CoverageBuild.objects.filter(job=self.job).order_by("-number")
        if limit is not None:
            builds = builds[:limit]
        results = [
            BuildResult(
                number=build.number,
                display_name=build.label,
                timestamp=build.created_at,
                statistics=build.statistics or {},
            )
            for build in builds
        ]
        logger.debug("Loaded %d builds of job %s", len(results), self.job)
        return results

    async def coverage_report(self) -> ReportNode | None:
        return await sync_to_async(self.latest_report)()

    async def coverage_overview(self) -> CoverageOverview | None:
        return await sync_to_async(self.overview)()

    async def build_results(self, limit: int | None) -> Sequence[BuildResult] | None:
        results = await sync_to_async(self.results)(limit)
        return results or None
