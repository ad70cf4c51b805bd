"""Forms for chart configuration dialogs.

A configuration dialog is a set of checkboxes (one per metric plus the `lines`
toggle) and the generic trend range fields. Chart-specific fill/save functions
only touch checkboxes; the registry handles the range fields.
"""

from __future__ import annotations

from collections.abc import Iterable

from django import forms
from django.conf import settings

from analysis.metrics import Metric
from analysis.trend import DEFAULT_NUMBER_OF_BUILDS

LINES_FIELD = "lines"
RANGE_FIELDS = ("numberOfBuilds", "numberOfDays", "buildAsDomain")


class ChartConfigurationForm(forms.Form):
    """Checkbox state of one chart configuration dialog.

    Args:
        metrics: Metrics offered as checkboxes.
        metric_id_prefix: Prefix of the checkbox DOM ids, e.g.
            `coverage-history-metric-` or `coverage-`.
        lines_id: DOM id of the `lines` checkbox.
    """

    lines = forms.BooleanField(required=False, label="Use lines instead of filled areas")
    numberOfBuilds = forms.IntegerField(
        required=False,
        min_value=0,
        initial=DEFAULT_NUMBER_OF_BUILDS,
        label="Number of builds",
        help_text="0 shows all builds.",
    )
    numberOfDays = forms.IntegerField(
        required=False,
        min_value=0,
        initial=0,
        label="Number of days",
        help_text="0 shows builds of any age.",
    )
    buildAsDomain = forms.BooleanField(required=False, initial=True, label="Use build names as x-axis")

    def __init__(
        self,
        *args,
        metrics: Iterable[Metric],
        metric_id_prefix: str,
        lines_id: str,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.fields["numberOfBuilds"].initial = getattr(settings, "COVERAGE_TREND_BUILD_LIMIT", DEFAULT_NUMBER_OF_BUILDS)
        self.fields[LINES_FIELD].widget.attrs["id"] = lines_id
        for metric in metrics:
            self.fields[metric.tag] = forms.BooleanField(
                required=False,
                initial=False,
                label=metric.display_name,
                widget=forms.CheckboxInput(attrs={"id": f"{metric_id_prefix}{metric.tag}"}),
            )

    def checkbox_names(self) -> tuple[str, ...]:
        """Return the names of all checkbox fields in declaration order."""

        return tuple(
            name
            for name, field in self.fields.items()
            if isinstance(field, forms.BooleanField) and name not in RANGE_FIELDS
        )

    def checkbox_id(self, name: str) -> str:
        return str(self.fields[name].widget.attrs.get("id") or "")

    def is_checked(self, name: str) -> bool:
        """Return the checked state of a checkbox.

        Bound forms report the submitted state; unbound forms report their
        initial state.
        """

        if self.is_bound:
            return bool(self.is_valid() and self.cleaned_data.get(name))
        return bool(self.initial.get(name, self.fields[name].initial))

    def set_checked(self, name: str, checked: bool) -> None:
        """Set the checked state of an existing checkbox; unknown names are ignored."""

        if name in self.checkbox_names():
            self.initial[name] = bool(checked)

    def checkbox_states(self) -> dict[str, bool]:
        """Return name → checked for every checkbox."""

        return {name: self.is_checked(name) for name in self.checkbox_names()}

    def range_values(self) -> dict[str, object]:
        """Return the current trend range fields."""

        if self.is_bound and self.is_valid():
            values = {name: self.cleaned_data.get(name) for name in RANGE_FIELDS}
        else:
            values = {name: self.initial.get(name, self.fields[name].initial) for name in RANGE_FIELDS}
        if values["numberOfBuilds"] is None:
            values["numberOfBuilds"] = self.fields["numberOfBuilds"].initial
        if values["numberOfDays"] is None:
            values["numberOfDays"] = 0
        values["buildAsDomain"] = bool(values["buildAsDomain"])
        return values

    def apply_range_values(self, configuration: dict[str, object]) -> None:
        """Copy well-typed range keys of a persisted configuration into the form."""

        for name in ("numberOfBuilds", "numberOfDays"):
            value = configuration.get(name)
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                self.initial[name] = value
        if isinstance(configuration.get("buildAsDomain"), bool):
            self.initial["buildAsDomain"] = configuration["buildAsDomain"]
