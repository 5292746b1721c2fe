"""Management command to fetch fused station weather using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_station_directory, get_weather_service, lookup_station
from wxrisk.entities import SourcePreference
from wxrisk.providers.base import ProviderError
from wxrisk.risk import assess_landing_safety


class Command(BaseCommand):
    help = "Fetch unified weather and the landing-safety assessment for a station"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--station", type=str, required=True, help="Station identifier")
        parser.add_argument(
            "--source",
            type=str,
            default="Hybrid",
            help="Live, Historical or Hybrid (metar/windborne are accepted aliases)",
        )

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        station_id = options["station"]
        preference = SourcePreference.parse(options.get("source"))
        station = lookup_station(get_station_directory(), station_id)
        try:
            weather = get_weather_service().get_unified_weather(station_id, station, preference)
        except ProviderError as exc:
            raise CommandError(f"Weather lookup failed: {exc}") from exc
        if weather is None:
            raise CommandError(f"No weather data for station {station_id}")

        payload = weather.as_dict()
        payload["assessment"] = assess_landing_safety(weather.current, weather.data_age_minutes).as_dict()
        self.stdout.write(json.dumps(payload))
