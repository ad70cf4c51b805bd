"""Create the coverage build table."""

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CoverageBuild",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("job", models.CharField(db_index=True, max_length=200)),
                ("number", models.PositiveIntegerField()),
                ("display_name", models.CharField(blank=True, max_length=120)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("statistics", models.JSONField(blank=True, default=dict)),
                ("coverage", models.JSONField(blank=True, default=dict)),
                ("report_tree", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "ordering": ["job", "-number"],
            },
        ),
        migrations.AddConstraint(
            model_name="coveragebuild",
            constraint=models.UniqueConstraint(fields=("job", "number"), name="unique_coverage_build_per_job"),
        ),
    ]
