"""JSON endpoints for chart colors, configuration dialogs and render events."""

from __future__ import annotations

import json
import logging
from typing import Any

from asgiref.sync import async_to_sync
from django.conf import settings
from django.http import HttpRequest, JsonResponse, QueryDict
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from analysis.colors import apply_theme
from analysis.metrics import Metric, parse_metrics
from analysis.treemap import TreeMapNodeConverter, colorize, coverage_palette
from core.apps import core_config
from core.charting.configuration import (
    JOB_TREND_PREFIX,
    ChartConfigurationRegistry,
    ChartDescriptor,
    InvalidConfigurationError,
    SessionConfigurationStore,
    UnknownChartError,
)
from core.charting.lifecycle import (
    ChartLifecycleCoordinator,
    RecordingRenderer,
    TrendChart,
    Trigger,
    dashboard_charts,
    job_trend_chart,
)
from core.charting.sources import BuildHistoryDataSource
from core.charting.themes import REQUIRED_COLOR_TOKENS, UnknownThemeError, resolver_for_theme
from core.forms import ChartConfigurationForm
from core.models import CoverageBuild

logger = logging.getLogger(__name__)


def _error(message: str, *, status: int) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=status)


def _theme(request: HttpRequest, payload: dict[str, Any] | None = None) -> str:
    theme = (payload or {}).get("theme") or request.GET.get("theme") or settings.COVERAGE_DEFAULT_THEME
    return str(theme).strip()


def _json_body(request: HttpRequest) -> dict[str, Any] | None:
    """Decode a JSON object body; form-encoded bodies are returned as a plain dict."""

    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body or b"{}")
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None
    return _querydict_to_dict(request.POST)


def _querydict_to_dict(data: QueryDict) -> dict[str, Any]:
    return {key: data.get(key) for key in data}


def _descriptor(registry: ChartConfigurationRegistry, chart_id: str) -> ChartDescriptor:
    """Look up a chart descriptor, registering job trends of known jobs on demand."""

    try:
        return registry.descriptor(chart_id)
    except UnknownChartError:
        job = chart_id[len(JOB_TREND_PREFIX) :] if chart_id.startswith(JOB_TREND_PREFIX) else ""
        if job and CoverageBuild.objects.filter(job=job).exists():
            return registry.register_job_trend(job)
        raise


def _coordinator(
    request: HttpRequest,
    *,
    job: str,
    build: int | None,
    theme: str,
) -> tuple[ChartLifecycleCoordinator, RecordingRenderer]:
    config = core_config()
    registry = config.chart_registry
    store = SessionConfigurationStore(request.session)
    source = BuildHistoryDataSource(job, build=build)
    report = source.latest_report()
    tree_metrics = parse_metrics(report.values) if report is not None else ()

    charts = dashboard_charts(tree_metrics)
    try:
        charts = (*charts, job_trend_chart(job))
    except ValueError as exc:
        logger.warning("Skipping job trend chart: %s", exc)
    # Session reads hit the database, so they happen here and not inside the event loop.
    configurations = {
        chart.configuration_id: registry.read_configuration(chart.configuration_id, store)
        for chart in charts
        if isinstance(chart, TrendChart)
    }

    renderer = RecordingRenderer()
    coordinator = ChartLifecycleCoordinator(
        charts,
        data_source=source,
        renderer=renderer,
        colors=config.theme_colors,
        read_configuration=lambda chart_id: configurations.get(chart_id, {}),
        theme=theme,
        default_build_limit=settings.COVERAGE_TREND_BUILD_LIMIT,
    )
    return coordinator, renderer


def _form_payload(form: ChartConfigurationForm) -> dict[str, Any]:
    return {
        "checkboxes": [
            {"name": name, "id": form.checkbox_id(name), "checked": form.is_checked(name)}
            for name in form.checkbox_names()
        ],
        **form.range_values(),
    }


def _build_number(raw: object) -> int | None:
    if raw in (None, ""):
        return None
    return int(str(raw))


@ensure_csrf_cookie
@require_GET
def colors(request: HttpRequest) -> JsonResponse:
    """Resolve symbolic color tokens for a theme.

    Query parameters:
        theme: Theme name; defaults to `COVERAGE_DEFAULT_THEME`.
        token: Repeatable token name; all required tokens when omitted.
    """

    theme = _theme(request)
    tokens = request.GET.getlist("token")
    try:
        if tokens:
            mapping = resolver_for_theme(theme).resolve_batch(tokens)
        else:
            mapping = core_config().theme_colors.colors(theme)
    except UnknownThemeError as exc:
        return _error(str(exc), status=400)
    requested = tokens or sorted(REQUIRED_COLOR_TOKENS)
    return JsonResponse({"ok": True, "theme": theme, "colors": {name: mapping[name] for name in requested if name in mapping}})


@ensure_csrf_cookie
@require_http_methods(["GET", "POST"])
def chart_configuration(request: HttpRequest, chart_id: str) -> JsonResponse:
    """Open (GET) or close (POST) the configuration dialog of a chart.

    A POST persists the configuration in the session and returns the render
    commands of the affected trend charts when a `job` is given.
    """

    registry = core_config().chart_registry
    store = SessionConfigurationStore(request.session)
    try:
        descriptor = _descriptor(registry, chart_id)
    except UnknownChartError:
        return _error(f"Unknown chart: {chart_id}", status=404)

    if request.method == "GET":
        form = registry.open_dialog(chart_id, store)
        return JsonResponse({"ok": True, "chart_id": chart_id, **_form_payload(form)})

    payload = _json_body(request)
    if payload is None:
        return _error("Expected a JSON object.", status=400)
    data = payload
    if request.content_type == "application/json":
        # Keys missing from a JSON body keep their saved values.
        current = registry.open_dialog(chart_id, store)
        data = {**current.checkbox_states(), **current.range_values(), **payload}
    form = descriptor.create_form(data)
    try:
        envelope = registry.close_dialog(chart_id, form, store)
    except InvalidConfigurationError as exc:
        return JsonResponse({"ok": False, "error": "Invalid configuration.", "errors": exc.errors}, status=400)

    commands: list[dict[str, Any]] = []
    job = str(payload.get("job") or "").strip()
    if job:
        theme = _theme(request, payload)
        try:
            core_config().theme_colors.colors(theme)
            coordinator, renderer = _coordinator(request, job=job, build=_build_number(payload.get("build")), theme=theme)
        except (UnknownThemeError, ValueError) as exc:
            return _error(str(exc), status=400)
        coordinator.configuration_saved(chart_id, envelope)
        async_to_sync(coordinator.run_pending)()
        commands = [command.to_json() for command in renderer.commands]

    return JsonResponse({"ok": True, "chart_id": chart_id, "configuration": envelope, "commands": commands})


@require_POST
def chart_events(request: HttpRequest) -> JsonResponse:
    """Run a lifecycle trigger and return the resulting render commands.

    Body (JSON): `event`, `job`, optional `build`, `theme`, `chart_id` (for
    `configuration_closed`) and `charts` (ids the client has already drawn).
    """

    payload = _json_body(request)
    if payload is None:
        return _error("Expected a JSON object.", status=400)
    try:
        trigger = Trigger(str(payload.get("event") or ""))
    except ValueError:
        return _error(f"Unknown event: {payload.get('event')!r}", status=400)
    job = str(payload.get("job") or "").strip()
    if not job:
        return _error("Missing job.", status=400)

    theme = _theme(request, payload)
    try:
        core_config().theme_colors.colors(theme)
        coordinator, renderer = _coordinator(request, job=job, build=_build_number(payload.get("build")), theme=theme)
    except (UnknownThemeError, ValueError) as exc:
        return _error(str(exc), status=400)

    drawn = payload.get("charts") or []
    if isinstance(drawn, list):
        coordinator.mark_drawn(str(chart_id) for chart_id in drawn)
    chart_id = payload.get("chart_id")
    async_to_sync(coordinator.dispatch)(trigger, theme=theme, chart_id=str(chart_id) if chart_id else None)
    logger.debug("Event %s for job %s produced %d commands", trigger.value, job, len(renderer.commands))
    return JsonResponse(
        {"ok": True, "theme": coordinator.theme, "commands": [command.to_json() for command in renderer.commands]}
    )


@require_GET
def coverage_tree(request: HttpRequest, metric: str) -> JsonResponse:
    """Return the themed tree map model of a metric for the latest (or given) build.

    Query parameters:
        job: Job name (required).
        build: Build number; the latest build when omitted.
        theme: Theme name.
    """

    try:
        selected = Metric.from_tag(metric)
    except ValueError:
        return _error(f"Unknown metric: {metric}", status=404)
    job = (request.GET.get("job") or "").strip()
    if not job:
        return _error("Missing job.", status=400)
    theme = _theme(request)
    try:
        mapping = core_config().theme_colors.colors(theme)
        source = BuildHistoryDataSource(job, build=_build_number(request.GET.get("build")))
    except (UnknownThemeError, ValueError) as exc:
        return _error(str(exc), status=400)

    report = source.latest_report()
    if report is None:
        return _error(f"No coverage report for job {job}.", status=404)
    tree = TreeMapNodeConverter(mapping).to_tree_chart_model(report, selected)
    if not selected.is_coverage:
        palette = coverage_palette(mapping, larger_is_better=selected.larger_is_better)
        if palette is not None:
            colorize(tree, palette)
    return JsonResponse({"ok": True, "metric": selected.tag, "tree": apply_theme(tree.to_json(), mapping)})
