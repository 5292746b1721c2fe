"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import AnalysisView, FlightsView, HealthView, StationsView, WeatherView

urlpatterns = [
    path("stations", StationsView.as_view(), name="stations"),
    path("weather", WeatherView.as_view(), name="weather"),
    path("flights", FlightsView.as_view(), name="flights"),
    path("analyze", AnalysisView.as_view(), name="analyze"),
    path("health", HealthView.as_view(), name="health"),
]
