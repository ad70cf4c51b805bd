"""URL configuration for core views."""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("api/colors/", views.colors, name="colors"),
    path("api/charts/events/", views.chart_events, name="chart_events"),
    path("api/charts/<path:chart_id>/configuration/", views.chart_configuration, name="chart_configuration"),
    path("api/trees/<str:metric>/", views.coverage_tree, name="coverage_tree"),
]
