"""Per-chart configuration dialogs and their persisted JSON.

Every configurable chart is identified by a string id and described by a pair
of functions: `fill` copies a persisted configuration onto the dialog form and
`save` reads the form back into a configuration. The registry owns these
descriptors, persists the saved configuration under a key derived from the
chart id and tells its subscribers that a chart needs a redraw.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Final, Protocol

from analysis.metrics import IGNORED_TREND_METRICS, Metric
from core.forms import LINES_FIELD, RANGE_FIELDS, ChartConfigurationForm

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX: Final[str] = "chart-configuration-"
CONFIGURATION_VERSION: Final[int] = 1

COVERAGE_HISTORY: Final[str] = "coverage-history"
METRICS_HISTORY: Final[str] = "metrics-history"
JOB_TREND_PREFIX: Final[str] = "coverage-"
RESERVED_CHART_IDS: Final[frozenset[str]] = frozenset({COVERAGE_HISTORY, METRICS_HISTORY})

PersistedChartConfig = dict[str, Any]
FillFunction = Callable[[ChartConfigurationForm, Mapping[str, Any]], None]
SaveFunction = Callable[[ChartConfigurationForm], PersistedChartConfig]
Subscriber = Callable[[str, Mapping[str, Any]], None]


class UnknownChartError(KeyError):
    """Raised when no descriptor is registered for a chart id."""


class InvalidConfigurationError(ValueError):
    """Raised when a bound dialog form fails validation.

    Attributes:
        errors: The form errors as returned by `form.errors.get_json_data()`.
    """

    def __init__(self, chart_id: str, errors: dict[str, Any]) -> None:
        super().__init__(f"Invalid configuration for chart {chart_id}")
        self.chart_id = chart_id
        self.errors = errors


class ConfigurationStore(Protocol):
    """Keyed string storage for persisted configurations."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryConfigurationStore:
    """Dictionary backed store, used by tests and background renders."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class SessionConfigurationStore:
    """Store configurations in a Django session, one entry per storage key."""

    def __init__(self, session: MutableMapping[str, Any]) -> None:
        self._session = session

    def get(self, key: str) -> str | None:
        value = self._session.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self._session[key] = value


def storage_key(chart_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{chart_id}"


@dataclass(frozen=True, slots=True)
class ChartDescriptor:
    """Fill/save pair of one configurable chart.

    Args:
        chart_id: Unique chart id.
        fill: Applies a persisted configuration to a form.
        save: Produces a persisted configuration from a form.
        metrics: Metrics offered in the dialog.
        metric_id_prefix: DOM id prefix of the metric checkboxes.
        lines_id: DOM id of the `lines` checkbox.
    """

    chart_id: str
    fill: FillFunction
    save: SaveFunction
    metrics: tuple[Metric, ...]
    metric_id_prefix: str
    lines_id: str

    def create_form(self, data: Mapping[str, Any] | None = None) -> ChartConfigurationForm:
        """Create an unbound form, or a bound one when `data` is given."""

        return ChartConfigurationForm(
            data,
            metrics=self.metrics,
            metric_id_prefix=self.metric_id_prefix,
            lines_id=self.lines_id,
        )


def _fill_checkboxes(form: ChartConfigurationForm, configuration: Mapping[str, Any]) -> None:
    metrics = configuration.get("metrics")
    if isinstance(metrics, Mapping):
        for name, checked in metrics.items():
            if isinstance(checked, bool):
                form.set_checked(str(name), checked)
    use_lines = configuration.get("useLines")
    if isinstance(use_lines, bool):
        form.set_checked(LINES_FIELD, use_lines)


def _save_checkboxes(form: ChartConfigurationForm, selects: Callable[[str], bool]) -> PersistedChartConfig:
    states = form.checkbox_states()
    metrics = {
        name: checked
        for name, checked in states.items()
        if name != LINES_FIELD and selects(form.checkbox_id(name))
    }
    return {"metrics": metrics, "useLines": states.get(LINES_FIELD, False)}


def fill_dialog(form: ChartConfigurationForm, configuration: Mapping[str, Any]) -> None:
    """Apply a persisted configuration to a history chart dialog.

    Only keys present in `configuration` change the form; unknown metric names
    are ignored.
    """

    _fill_checkboxes(form, configuration)


def save_dialog(form: ChartConfigurationForm) -> PersistedChartConfig:
    """Read a history chart dialog: metric checkboxes are the ids containing `-history-metric`."""

    return _save_checkboxes(form, lambda checkbox_id: "-history-metric" in checkbox_id)


def fill_coverage(form: ChartConfigurationForm, configuration: Mapping[str, Any]) -> None:
    _fill_checkboxes(form, configuration)


def save_coverage(form: ChartConfigurationForm) -> PersistedChartConfig:
    """Read a job trend dialog: metric checkboxes are the ids starting with `coverage-`."""

    return _save_checkboxes(form, lambda checkbox_id: checkbox_id.startswith(JOB_TREND_PREFIX))


def job_trend_id(url: str) -> str:
    """Return the configuration id `coverage-<url>` of a job trend chart.

    Raises:
        ValueError: When the id is one of the dashboard history charts.
    """

    chart_id = f"{JOB_TREND_PREFIX}{url}"
    if chart_id in RESERVED_CHART_IDS:
        raise ValueError(f"Job {url!r} would share the configuration of chart {chart_id}")
    return chart_id


class ChartConfigurationRegistry:
    """Registry of chart descriptors plus the dialog open/close protocol.

    One registry is constructed at application start and handed to whatever
    opens or closes dialogs. Subscribers are called after a dialog close has
    been persisted.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, ChartDescriptor] = {}
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def register(
        self,
        chart_id: str,
        fill: FillFunction,
        save: SaveFunction,
        *,
        metrics: tuple[Metric, ...] = tuple(Metric),
        metric_id_prefix: str | None = None,
        lines_id: str | None = None,
    ) -> ChartDescriptor:
        """Register (or replace) the descriptor of a chart id."""

        descriptor = ChartDescriptor(
            chart_id=chart_id,
            fill=fill,
            save=save,
            metrics=metrics,
            metric_id_prefix=metric_id_prefix if metric_id_prefix is not None else f"{chart_id}-metric-",
            lines_id=lines_id if lines_id is not None else f"{chart_id}-lines",
        )
        with self._lock:
            if chart_id in self._descriptors:
                logger.debug("Replacing chart configuration descriptor %s", chart_id)
            self._descriptors[chart_id] = descriptor
        return descriptor

    def register_job_trend(self, url: str) -> ChartDescriptor:
        """Register the trend chart of a job, identified by `coverage-<url>`.

        Metric checkboxes use the `coverage-<tag>` ids the coverage pair
        selects; the `lines` checkbox id is outside that prefix.

        Raises:
            ValueError: When `url` maps onto a reserved history chart id.
        """

        chart_id = job_trend_id(url)
        with self._lock:
            existing = self._descriptors.get(chart_id)
        if existing is not None:
            return existing
        return self.register(
            chart_id,
            fill_coverage,
            save_coverage,
            metrics=_trend_metrics(coverage=True),
            metric_id_prefix=JOB_TREND_PREFIX,
            lines_id=f"trend-lines-{url}",
        )

    def descriptor(self, chart_id: str) -> ChartDescriptor:
        """Return the descriptor of a chart id.

        Raises:
            UnknownChartError: When nothing is registered under `chart_id`.
        """

        with self._lock:
            try:
                return self._descriptors[chart_id]
            except KeyError:
                raise UnknownChartError(chart_id) from None

    def chart_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._descriptors)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Add a redraw subscriber and return a function that removes it."""

        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def read_configuration(self, chart_id: str, store: ConfigurationStore) -> dict[str, Any]:
        """Return the persisted configuration of a chart, `{}` when absent or corrupt."""

        raw = store.get(storage_key(chart_id))
        if raw is None:
            return {}
        try:
            configuration = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring corrupt configuration of chart %s", chart_id)
            return {}
        if not isinstance(configuration, dict):
            logger.warning("Ignoring configuration of chart %s: not a JSON object", chart_id)
            return {}
        return configuration

    def open_dialog(
        self,
        chart_id: str,
        store: ConfigurationStore,
        form: ChartConfigurationForm | None = None,
    ) -> ChartConfigurationForm:
        """Fill a dialog form from the persisted configuration of a chart.

        Args:
            chart_id: Registered chart id.
            store: Storage holding persisted configurations.
            form: Unbound form to fill; a fresh one when omitted.

        Returns:
            The filled form.

        Raises:
            ValueError: When `form` is bound; submitted data would hide the
                filled state.
        """

        descriptor = self.descriptor(chart_id)
        if form is None:
            form = descriptor.create_form()
        elif form.is_bound:
            raise ValueError(f"Cannot fill the dialog of chart {chart_id} into a bound form")
        configuration = self.read_configuration(chart_id, store)
        form.apply_range_values(configuration)
        descriptor.fill(form, configuration)
        return form

    def close_dialog(
        self,
        chart_id: str,
        form: ChartConfigurationForm,
        store: ConfigurationStore,
    ) -> dict[str, Any]:
        """Save a dialog form, persist it and notify all subscribers.

        Returns:
            The persisted envelope.

        Raises:
            InvalidConfigurationError: When `form` is bound and invalid.
        """

        descriptor = self.descriptor(chart_id)
        if form.is_bound and not form.is_valid():
            raise InvalidConfigurationError(chart_id, form.errors.get_json_data())
        envelope: dict[str, Any] = dict(descriptor.save(form))
        range_values = form.range_values()
        for name in RANGE_FIELDS:
            envelope[name] = range_values[name]
        envelope["version"] = CONFIGURATION_VERSION

        store.set(storage_key(chart_id), json.dumps(envelope, sort_keys=True))
        logger.info("Saved configuration of chart %s", chart_id)

        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            subscriber(chart_id, envelope)
        return envelope


def _trend_metrics(*, coverage: bool) -> tuple[Metric, ...]:
    return tuple(
        metric for metric in Metric if metric.is_coverage == coverage and metric not in IGNORED_TREND_METRICS
    )


def build_default_registry() -> ChartConfigurationRegistry:
    """Create the registry with the two history chart descriptors."""

    registry = ChartConfigurationRegistry()
    registry.register(
        COVERAGE_HISTORY,
        fill_dialog,
        save_dialog,
        metrics=_trend_metrics(coverage=True),
        metric_id_prefix="coverage-history-metric-",
        lines_id="coverage-history-lines",
    )
    registry.register(
        METRICS_HISTORY,
        fill_dialog,
        save_dialog,
        metrics=_trend_metrics(coverage=False),
        metric_id_prefix="metrics-history-metric-",
        lines_id="metrics-history-lines",
    )
    return registry
