"""Admin registrations for the core app."""

from __future__ import annotations

from django.contrib import admin

from core.models import CoverageBuild


@admin.register(CoverageBuild)
class CoverageBuildAdmin(admin.ModelAdmin):
    """Admin configuration for CoverageBuild."""

    list_display = ("job", "number", "display_name", "created_at")
    list_filter = ("job",)
    search_fields = ("job", "display_name")
    ordering = ("job", "-number")
