"""REST API views over the weather fusion and flight acquisition services."""
from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Optional

from django.apps import apps
from django.conf import settings
from django.core.cache import caches
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from wxrisk.approach import filter_approaching
from wxrisk.config import Capabilities
from wxrisk.entities import SourcePreference, Station
from wxrisk.health import ProviderHealth
from wxrisk.providers.adsb import AdsbLolProvider
from wxrisk.providers.base import ProviderError, RateLimited, RequestConfig
from wxrisk.providers.historical import WindBorneProvider
from wxrisk.providers.metar import AviationWeatherProvider
from wxrisk.providers.opensky import OpenSkyProvider
from wxrisk.risk import assess_flight_risk, assess_landing_safety, explain_confidence, explain_risk
from wxrisk.services.flights import FlightAcquisitionService, FlightDataUnavailable, build_flight_sources
from wxrisk.services.weather import WeatherFusionService
from wxrisk.stations import StationDirectory

logger = logging.getLogger(__name__)

COORDINATE_LIMITS = {"lat": 90.0, "lng": 180.0}


def get_capabilities() -> Capabilities:
    return apps.get_app_config("wxrisk_api").capabilities


@lru_cache(maxsize=1)
def get_health() -> ProviderHealth:
    return ProviderHealth()


@lru_cache(maxsize=1)
def get_historical_provider() -> WindBorneProvider:
    return WindBorneProvider(request_config=RequestConfig(timeout=settings.WXRISK_HTTP_TIMEOUT))


@lru_cache(maxsize=1)
def get_station_directory() -> StationDirectory:
    return StationDirectory(get_historical_provider(), cache=caches[settings.WXRISK_CACHE_ALIAS])


@lru_cache(maxsize=1)
def get_weather_service() -> WeatherFusionService:
    return WeatherFusionService(
        live_provider=AviationWeatherProvider(request_config=RequestConfig(timeout=settings.WXRISK_HTTP_TIMEOUT)),
        historical_provider=get_historical_provider(),
        cache=caches[settings.WXRISK_CACHE_ALIAS],
        health=get_health(),
    )


@lru_cache(maxsize=1)
def get_flight_service() -> FlightAcquisitionService:
    sources = build_flight_sources(
        get_capabilities(),
        opensky=OpenSkyProvider(),
        secondary=AdsbLolProvider(),
    )
    return FlightAcquisitionService(
        sources,
        cache=caches[settings.WXRISK_CACHE_ALIAS],
        deadline_seconds=settings.WXRISK_FLIGHT_DEADLINE,
        health=get_health(),
    )


def _rate_limited(exc: RateLimited) -> Response:
    return Response(
        {"error": "Upstream rate limit reached", "retryAfterSeconds": exc.retry_after_seconds},
        status=status.HTTP_429_TOO_MANY_REQUESTS,
    )


def _upstream_failed(exc: ProviderError) -> Response:
    return Response({"error": str(exc) or "Upstream provider failed"}, status=status.HTTP_502_BAD_GATEWAY)


def lookup_station(directory: StationDirectory, station_id: str) -> Optional[Station]:
    """Station metadata for ``station_id``; a failing station list only costs the metadata."""
    try:
        return directory.find(station_id)
    except ProviderError as exc:
        logger.warning("Station list unavailable, continuing without metadata for %s: %s", station_id, exc)
        return None


def _coordinate(request, name: str) -> Optional[float]:
    raw = request.query_params.get(name)
    if raw is None:
        return None
    value = float(raw)
    if not math.isfinite(value) or abs(value) > COORDINATE_LIMITS[name]:
        raise ValueError(f"{name} out of range: {raw}")
    return value


class StationsView(APIView):
    """List the stations known to the historical archive."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        try:
            stations = get_station_directory().stations()
        except RateLimited as exc:
            return _rate_limited(exc)
        except ProviderError as exc:
            return _upstream_failed(exc)
        return Response([station.as_dict() for station in stations], status=status.HTTP_200_OK)


class WeatherView(APIView):
    """Fused weather for one station."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        station_id = request.query_params.get("station")
        if not station_id:
            return Response({"detail": "station query parameter is required"}, status=status.HTTP_400_BAD_REQUEST)
        preference = SourcePreference.parse(request.query_params.get("source"))

        station = lookup_station(get_station_directory(), station_id)
        try:
            weather = get_weather_service().get_unified_weather(station_id, station, preference)
        except RateLimited as exc:
            return _rate_limited(exc)
        except ProviderError as exc:
            return _upstream_failed(exc)
        if weather is None:
            return Response({"detail": f"No weather data for station {station_id}"}, status=status.HTTP_404_NOT_FOUND)
        return Response(weather.as_dict(), status=status.HTTP_200_OK)


class FlightsView(APIView):
    """Aircraft near a point, optionally narrowed to those inbound to a station."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        try:
            latitude = _coordinate(request, "lat")
            longitude = _coordinate(request, "lng")
        except ValueError:
            return Response(
                {"detail": "lat must be within [-90, 90] and lng within [-180, 180]"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        station_id = request.query_params.get("station")
        approaching_only = request.query_params.get("approaching") in ("1", "true", "yes")

        try:
            station = get_station_directory().find(station_id) if station_id else None
            if station_id and station is None:
                return Response({"detail": f"Unknown station {station_id}"}, status=status.HTTP_404_NOT_FOUND)
            if latitude is None or longitude is None:
                if station is None:
                    return Response({"detail": "lat and lng query parameters are required"}, status=status.HTTP_400_BAD_REQUEST)
                latitude, longitude = station.latitude, station.longitude
            flights = get_flight_service().get_nearby_flights(latitude, longitude)
        except RateLimited as exc:
            return _rate_limited(exc)
        except FlightDataUnavailable as exc:
            return Response({"error": str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        except ProviderError as exc:
            return _upstream_failed(exc)

        if station is not None and approaching_only:
            payload = []
            for item in filter_approaching(flights, station):
                entry = item.flight.as_dict()
                entry["approach"] = item.approach.as_dict()
                payload.append(entry)
        else:
            payload = [flight.as_dict() for flight in flights]
        return Response({"count": len(payload), "flights": payload}, status=status.HTTP_200_OK)


class AnalysisView(APIView):
    """Landing-safety assessment for a station, with optional per-flight risk."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        station_id = request.query_params.get("station")
        if not station_id:
            return Response({"detail": "station query parameter is required"}, status=status.HTTP_400_BAD_REQUEST)
        include_flights = request.query_params.get("flights") in ("1", "true", "yes")

        station = lookup_station(get_station_directory(), station_id)
        try:
            weather = get_weather_service().get_unified_weather(station_id, station)
        except RateLimited as exc:
            return _rate_limited(exc)
        except ProviderError as exc:
            return _upstream_failed(exc)

        current = weather.current if weather else None
        age = weather.data_age_minutes if weather else None
        assessment = assess_landing_safety(current, age)
        payload = assessment.as_dict()
        payload["station"] = station_id
        payload["explanation"] = explain_risk(assessment.level)
        payload["confidenceExplanation"] = explain_confidence(assessment.confidence)
        payload["weather"] = weather.as_dict() if weather else None

        if include_flights and station is not None:
            try:
                flights = get_flight_service().get_nearby_flights(station.latitude, station.longitude)
            except RateLimited as exc:
                return _rate_limited(exc)
            except ProviderError as exc:
                return _upstream_failed(exc)
            payload["flights"] = [
                {"flight": flight.as_dict(), "risk": assess_flight_risk(flight, current, age).as_dict()}
                for flight in flights
            ]
        return Response(payload, status=status.HTTP_200_OK)


class HealthView(APIView):
    """Provider failure counters, last successes and configured capabilities."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        cache_backend = caches[settings.WXRISK_CACHE_ALIAS]
        stats = cache_backend.stats() if hasattr(cache_backend, "stats") else None
        payload = get_health().snapshot(stats)
        payload["capabilities"] = get_capabilities().as_dict()
        return Response(payload, status=status.HTTP_200_OK)
