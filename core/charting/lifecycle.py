"""Render pipeline orchestration for the coverage dashboard charts.

Each chart runs the same sequence of steps: resolve theme colors, acquire
data, colorize, build the ECharts option and draw. Triggers decide which charts
run the full sequence and which are only resized. Charts run concurrently;
within one chart the steps are strictly ordered.

Only the latest run of a chart may draw: a new run cancels the superseded task
and a per-chart generation counter drops any completion that arrives late.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Protocol

from analysis.colors import ColorMapping
from analysis.metrics import Metric
from analysis.trend import DEFAULT_NUMBER_OF_BUILDS, BuildResult, TrendConfiguration, create_trend_chart
from analysis.treemap import ReportNode, TreeMapNodeConverter, colorize, coverage_palette

from .configuration import COVERAGE_HISTORY, METRICS_HISTORY, job_trend_id
from .options import CoverageOverview, overview_option, themed, treemap_option, trend_option
from .themes import ThemeColorCache

logger = logging.getLogger(__name__)


class Trigger(str, Enum):
    """UI events that start a render."""

    LOAD = "load"
    RESIZE = "resize"
    TAB_SHOWN = "tab_shown"
    CONFIGURATION_CLOSED = "configuration_closed"
    THEME_CHANGED = "theme_changed"


@dataclass(frozen=True, slots=True)
class TreemapChart:
    chart_id: str
    metric: Metric


@dataclass(frozen=True, slots=True)
class OverviewChart:
    chart_id: str = "coverage-overview"


@dataclass(frozen=True, slots=True)
class TrendChart:
    """A trend chart and the id of its configuration dialog.

    Args:
        chart_id: DOM id of the chart.
        configuration_id: Registry id whose persisted configuration drives the
            chart.
        metrics_chart: True for the software metrics trend.
    """

    chart_id: str
    configuration_id: str
    metrics_chart: bool = False


ChartKind = TreemapChart | OverviewChart | TrendChart


def dashboard_charts(tree_metrics: Iterable[Metric] = ()) -> tuple[ChartKind, ...]:
    """Return the charts of a build dashboard: overview, both trends and one tree map per metric."""

    charts: list[ChartKind] = [
        OverviewChart(),
        TrendChart("coverage-trend", COVERAGE_HISTORY),
        TrendChart("metrics-trend", METRICS_HISTORY, metrics_chart=True),
    ]
    charts.extend(TreemapChart(f"tree-{metric.tag}", metric) for metric in tree_metrics)
    return tuple(charts)


def job_trend_chart(url: str) -> TrendChart:
    """Return the trend chart of a job; reserved ids raise `ValueError`."""

    return TrendChart(f"trend-{url}", job_trend_id(url))


class DataSource(Protocol):
    """Asynchronous provider of chart data for one job.

    Every method may return None to signal that no data is available.
    """

    async def coverage_report(self) -> ReportNode | None: ...

    async def coverage_overview(self) -> CoverageOverview | None: ...

    async def build_results(self, limit: int | None) -> Sequence[BuildResult] | None: ...


class Renderer(Protocol):
    def draw(self, chart_id: str, option: dict[str, Any]) -> None: ...

    def resize(self, chart_id: str) -> None: ...


@dataclass(frozen=True, slots=True)
class RenderCommand:
    chart_id: str
    action: Literal["draw", "resize"]
    option: dict[str, Any] | None = None

    def to_json(self) -> dict[str, Any]:
        return {"chart_id": self.chart_id, "action": self.action, "option": self.option}


@dataclass(slots=True)
class RecordingRenderer:
    """Renderer that collects commands for a client to replay."""

    commands: list[RenderCommand] = field(default_factory=list)

    def draw(self, chart_id: str, option: dict[str, Any]) -> None:
        self.commands.append(RenderCommand(chart_id, "draw", option))

    def resize(self, chart_id: str) -> None:
        self.commands.append(RenderCommand(chart_id, "resize"))


ConfigurationReader = Callable[[str], Mapping[str, Any]]


class ChartLifecycleCoordinator:
    """Run the render pipeline of a set of charts in reaction to UI triggers.

    Args:
        charts: Charts on the page.
        data_source: Data provider for the charts.
        renderer: Receives draw and resize commands.
        colors: Shared theme color cache.
        read_configuration: Returns the persisted configuration of a
            configuration id; used by trend charts.
        theme: Initially active theme.
        default_build_limit: Number of builds of a trend whose configuration
            does not set `numberOfBuilds`.
    """

    def __init__(
        self,
        charts: Iterable[ChartKind],
        *,
        data_source: DataSource,
        renderer: Renderer,
        colors: ThemeColorCache,
        read_configuration: ConfigurationReader,
        theme: str = "light",
        default_build_limit: int = DEFAULT_NUMBER_OF_BUILDS,
    ) -> None:
        self._charts: dict[str, ChartKind] = {chart.chart_id: chart for chart in charts}
        self._data_source = data_source
        self._renderer = renderer
        self._colors = colors
        self._read_configuration = read_configuration
        self._theme = theme
        self._default_build_limit = default_build_limit
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._generations: dict[str, int] = {}
        self._drawn: set[str] = set()
        self._pending: dict[str, dict[str, Any]] = {}
        self._background: set[asyncio.Task[None]] = set()

    @property
    def theme(self) -> str:
        return self._theme

    @property
    def drawn(self) -> frozenset[str]:
        return frozenset(self._drawn)

    def mark_drawn(self, chart_ids: Iterable[str]) -> None:
        """Record charts that a client has already drawn (unknown ids are ignored)."""

        self._drawn.update(chart_id for chart_id in chart_ids if chart_id in self._charts)

    async def dispatch(
        self,
        trigger: Trigger | str,
        *,
        theme: str | None = None,
        chart_id: str | None = None,
        configuration: Mapping[str, Any] | None = None,
    ) -> None:
        """Run the pipeline steps a trigger requires.

        Args:
            trigger: The UI event.
            theme: New theme for `theme_changed`.
            chart_id: Configuration id for `configuration_closed`.
            configuration: Freshly saved configuration for `configuration_closed`;
                read from storage when omitted.
        """

        trigger = Trigger(trigger)
        if trigger is Trigger.RESIZE:
            for drawn_id in sorted(self._drawn):
                self._renderer.resize(drawn_id)
            return

        overrides: dict[str, Mapping[str, Any]] = {}
        if trigger is Trigger.LOAD:
            targets = list(self._charts.values())
        elif trigger is Trigger.THEME_CHANGED:
            if theme:
                self._theme = theme
            targets = list(self._charts.values())
        elif trigger is Trigger.TAB_SHOWN:
            targets = [chart for chart in self._charts.values() if isinstance(chart, TrendChart)]
            for chart in self._charts.values():
                if not isinstance(chart, TrendChart) and chart.chart_id in self._drawn:
                    self._renderer.resize(chart.chart_id)
        else:
            targets = [
                chart
                for chart in self._charts.values()
                if isinstance(chart, TrendChart) and chart.configuration_id == chart_id
            ]
            if configuration is not None:
                overrides = {chart.chart_id: configuration for chart in targets}
            if not targets:
                logger.debug("No chart uses configuration %s", chart_id)

        tasks = [self._schedule(chart, overrides.get(chart.chart_id)) for chart in targets]
        if not tasks:
            return
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for chart, outcome in zip(targets, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Render of chart %s failed", chart.chart_id, exc_info=outcome)

    def configuration_saved(self, chart_id: str, configuration: Mapping[str, Any]) -> None:
        """Registry subscriber: re-render the charts of a saved configuration.

        Inside a running event loop the render starts right away; otherwise it
        waits for `run_pending`.
        """

        self._pending[chart_id] = dict(configuration)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.run_pending())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def run_pending(self) -> None:
        """Render every chart whose configuration was saved since the last call."""

        while self._pending:
            chart_id, configuration = self._pending.popitem()
            await self.dispatch(Trigger.CONFIGURATION_CLOSED, chart_id=chart_id, configuration=configuration)

    def _schedule(self, chart: ChartKind, configuration: Mapping[str, Any] | None) -> asyncio.Task[None]:
        generation = self._generations.get(chart.chart_id, 0) + 1
        self._generations[chart.chart_id] = generation
        previous = self._tasks.get(chart.chart_id)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.get_running_loop().create_task(self._run(chart, generation, configuration))
        self._tasks[chart.chart_id] = task
        return task

    async def _run(self, chart: ChartKind, generation: int, configuration: Mapping[str, Any] | None) -> None:
        mapping = await self._resolve_colors()
        try:
            data = await self._acquire(chart, configuration)
        except Exception:
            logger.warning("Skipping chart %s: data source failed", chart.chart_id, exc_info=True)
            return
        if data is None:
            logger.info("Skipping chart %s: no data", chart.chart_id)
            return

        option = self._build_option(chart, data, mapping)
        if self._generations.get(chart.chart_id) != generation:
            logger.debug("Dropping stale render of chart %s", chart.chart_id)
            return
        self._renderer.draw(chart.chart_id, themed(option, mapping))
        self._drawn.add(chart.chart_id)

    async def _resolve_colors(self) -> ColorMapping:
        return await asyncio.to_thread(self._colors.colors, self._theme)

    async def _acquire(self, chart: ChartKind, configuration: Mapping[str, Any] | None) -> Any:
        if isinstance(chart, TreemapChart):
            return await self._data_source.coverage_report()
        if isinstance(chart, OverviewChart):
            overview = await self._data_source.coverage_overview()
            return None if overview is None or overview.is_empty else overview

        if configuration is None:
            configuration = self._read_configuration(chart.configuration_id)
        trend_configuration = TrendConfiguration.from_json(
            {"numberOfBuilds": self._default_build_limit, **configuration}
        )
        limit = trend_configuration.number_of_builds if trend_configuration.number_of_builds > 0 else None
        results = await self._data_source.build_results(limit)
        if results is None:
            return None
        return results, trend_configuration

    def _build_option(self, chart: ChartKind, data: Any, mapping: ColorMapping) -> dict[str, Any]:
        if isinstance(chart, TreemapChart):
            tree = TreeMapNodeConverter(mapping).to_tree_chart_model(data, chart.metric)
            if not chart.metric.is_coverage:
                palette = coverage_palette(mapping, larger_is_better=chart.metric.larger_is_better)
                if palette is not None:
                    colorize(tree, palette)
            return treemap_option(tree, chart.metric)
        if isinstance(chart, OverviewChart):
            return overview_option(data)

        results, trend_configuration = data
        model = create_trend_chart(results, trend_configuration, metrics_chart=chart.metrics_chart)
        return trend_option(model)
