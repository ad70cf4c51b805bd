"""Database models for the core app.

A `CoverageBuild` stores what the dashboard needs from one CI build: the
aggregated statistics for trend charts, the covered/missed counts for the
overview and the report hierarchy for tree maps. Coverage itself is computed
elsewhere; rows are written as-is by the importer.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class CoverageBuild(models.Model):
    """Coverage results of one build of a job.

    Attributes:
        job: Job name or URL segment, e.g. `folder/project`.
        number: Build number, unique per job.
        display_name: Label shown on trend chart x-axes, e.g. `#42`.
        created_at: Build start time.
        statistics: Metric tag to value; coverage values are percentages.
        coverage: Metric tag to `{"covered": int, "missed": int}`.
        report_tree: Report hierarchy (module, package, file nodes with
            per-metric values) used for tree maps.
    """

    job = models.CharField(max_length=200, db_index=True)
    number = models.PositiveIntegerField()
    display_name = models.CharField(max_length=120, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    statistics = models.JSONField(default=dict, blank=True)
    coverage = models.JSONField(default=dict, blank=True)
    report_tree = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["job", "-number"]
        constraints = [
            models.UniqueConstraint(fields=["job", "number"], name="unique_coverage_build_per_job"),
        ]

    def __str__(self) -> str:
        return f"{self.job} {self.label}"

    @property
    def label(self) -> str:
        """Return the display name, defaulting to `#<number>`."""

        return self.display_name or f"#{self.number}"
