"""Import coverage build results from JSON files."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from analysis.metrics import Metric
from core.models import CoverageBuild


def statistics_from_counts(coverage: Mapping[str, Any], report_values: Mapping[str, Any]) -> dict[str, float]:
    """Derive trend statistics from covered/missed counts and report root values.

    Coverage metrics become percentages rounded to two decimals; software
    metrics are copied from the report root when numeric.
    """

    statistics: dict[str, float] = {}
    for metric in Metric:
        if metric.is_coverage:
            entry = coverage.get(metric.tag)
            if not isinstance(entry, Mapping):
                continue
            covered = entry.get("covered")
            missed = entry.get("missed")
            if not all(isinstance(count, int) and not isinstance(count, bool) for count in (covered, missed)):
                continue
            if covered + missed > 0:
                statistics[metric.tag] = round(covered * 100.0 / (covered + missed), 2)
        else:
            value = report_values.get(metric.tag)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                statistics[metric.tag] = value
    return statistics


class Command(BaseCommand):
    """Create or update `CoverageBuild` rows from exported build JSON."""

    help = "Import coverage builds from JSON files (one object or a list of objects per file)."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument("paths", nargs="+", help="JSON files to import.")
        parser.add_argument(
            "--job",
            default=None,
            help="Job name for builds whose JSON does not name one.",
        )
        parser.add_argument(
            "--check",
            action="store_true",
            help="Dry-run: report what would change without writing.",
        )
        parser.add_argument(
            "--write",
            action="store_true",
            help="Write changes to the database.",
        )

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        check: bool = options["check"]
        write: bool = options["write"]
        default_job: str | None = options["job"]

        if check and write:
            raise CommandError("Use either --check or --write, not both.")
        if not check and not write:
            raise CommandError("Refusing to write without explicit intent; pass --check or --write.")

        # Every file is validated before anything is written.
        builds: dict[tuple[str, int], dict[str, Any]] = {}
        processed = 0
        for raw_path in options["paths"]:
            for entry in self._load(Path(raw_path)):
                fields = self._build_fields(entry, default_job=default_job, source=raw_path)
                builds[(fields.pop("job"), fields.pop("number"))] = fields
                processed += 1

        totals = {"processed": processed, "created": 0, "updated": 0}
        for job, number in builds:
            exists = CoverageBuild.objects.filter(job=job, number=number).exists()
            totals["updated" if exists else "created"] += 1
        if write:
            with transaction.atomic():
                for (job, number), fields in builds.items():
                    CoverageBuild.objects.update_or_create(job=job, number=number, defaults=fields)

        mode = "CHECK" if check else "WRITE"
        self.stdout.write(f"[{mode}] {totals}")
        return None

    def _load(self, path: Path) -> list[Mapping[str, Any]]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise CommandError(f"Cannot read {path}: {exc}") from exc
        except ValueError as exc:
            raise CommandError(f"{path} is not valid JSON: {exc}") from exc

        entries = payload if isinstance(payload, list) else [payload]
        if not all(isinstance(entry, Mapping) for entry in entries):
            raise CommandError(f"{path} must contain a JSON object or a list of objects.")
        return entries

    def _build_fields(self, entry: Mapping[str, Any], *, default_job: str | None, source: str) -> dict[str, Any]:
        job = str(entry.get("job") or default_job or "").strip()
        if not job:
            raise CommandError(f"{source}: build without a job; pass --job.")
        number = entry.get("number")
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise CommandError(f"{source}: build number must be a non-negative integer, got {number!r}.")

        created_at = timezone.now()
        if entry.get("created_at"):
            parsed = parse_datetime(str(entry["created_at"]))
            if parsed is None:
                raise CommandError(f"{source}: invalid created_at {entry['created_at']!r}.")
            created_at = parsed if timezone.is_aware(parsed) else timezone.make_aware(parsed)

        coverage = entry.get("coverage") or {}
        report_tree = entry.get("report_tree") or {}
        statistics = entry.get("statistics")
        if not isinstance(statistics, Mapping):
            values = report_tree.get("values") if isinstance(report_tree, Mapping) else None
            statistics = statistics_from_counts(coverage, values if isinstance(values, Mapping) else {})

        return {
            "job": job,
            "number": number,
            "display_name": str(entry.get("display_name") or ""),
            "created_at": created_at,
            "statistics": dict(statistics),
            "coverage": coverage,
            "report_tree": report_tree,
        }
