"""App configuration for the core Django app."""

from __future__ import annotations

from django.apps import AppConfig, apps


class CoreConfig(AppConfig):
    """Configuration for the `core` app.

    Owns the process-wide chart configuration registry and theme color cache,
    both built once in `ready()`.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "core"

    def ready(self) -> None:
        from core.charting.configuration import build_default_registry
        from core.charting.themes import ThemeColorCache

        self.chart_registry = build_default_registry()
        self.theme_colors = ThemeColorCache()


def core_config() -> CoreConfig:
    """Return the installed `core` app configuration."""

    return apps.get_app_config("core")
