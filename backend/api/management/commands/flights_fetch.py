"""Management command to list nearby aircraft through the flight acquisition chain."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_flight_service
from wxrisk.providers.base import ProviderError, RateLimited


class Command(BaseCommand):
    help = "Fetch aircraft within 50 km and below 5000 m of the provided coordinates"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--lat", type=float, required=True, help="Latitude")
        parser.add_argument("--lon", type=float, required=True, help="Longitude")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        try:
            flights = get_flight_service().get_nearby_flights(options["lat"], options["lon"])
        except RateLimited as exc:
            raise CommandError(f"Rate limited; retry after {exc.retry_after_seconds} s") from exc
        except ProviderError as exc:
            raise CommandError(f"All flight sources failed: {exc}") from exc
        self.stdout.write(json.dumps([flight.as_dict() for flight in flights]))
