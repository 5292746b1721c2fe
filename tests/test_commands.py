from __future__ import annotations

import json
from datetime import datetime, timezone
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from backend.api.management.commands import flights_fetch, weather_fetch
from wxrisk.entities import FlightState, SampleSource, UnifiedWeather, WeatherSample
from wxrisk.providers.base import RateLimited, UpstreamUnavailable


class DirectoryStub:
    def find(self, station_id):
        return None


class FailingDirectory:
    def find(self, station_id):
        raise UpstreamUnavailable("HTTP 503")


class WeatherStub:
    def __init__(self, result):
        self.result = result

    def get_unified_weather(self, station_id, station_info=None, source_preference=None):
        return self.result


class FlightStub:
    def __init__(self, flights=None, error=None):
        self.flights = flights or []
        self.error = error

    def get_nearby_flights(self, latitude, longitude):
        if self.error is not None:
            raise self.error
        return self.flights


def make_weather() -> UnifiedWeather:
    sample = WeatherSample(
        timestamp=datetime(2024, 3, 21, 18, 0, tzinfo=timezone.utc),
        source=SampleSource.HISTORICAL,
        temperature_f=55.0,
        wind_x=3.0,
        wind_y=4.0,
        visibility_sm=10.0,
    )
    return UnifiedWeather("5001", (sample,), sample, 12, True, "Historical")


def test_weather_fetch_prints_payload_with_assessment(monkeypatch):
    monkeypatch.setattr(weather_fetch, "get_station_directory", lambda: DirectoryStub())
    monkeypatch.setattr(weather_fetch, "get_weather_service", lambda: WeatherStub(make_weather()))
    out = StringIO()

    call_command("weather_fetch", "--station", "5001", stdout=out)

    payload = json.loads(out.getvalue())
    assert payload["station"] == "5001"
    assert payload["assessment"]["risk"] == "Safe"


def test_weather_fetch_without_station_list_still_reports(monkeypatch):
    monkeypatch.setattr(weather_fetch, "get_station_directory", lambda: FailingDirectory())
    monkeypatch.setattr(weather_fetch, "get_weather_service", lambda: WeatherStub(make_weather()))
    out = StringIO()

    call_command("weather_fetch", "--station", "5001", stdout=out)

    assert json.loads(out.getvalue())["source"] == "Historical"


def test_weather_fetch_without_data_fails(monkeypatch):
    monkeypatch.setattr(weather_fetch, "get_station_directory", lambda: DirectoryStub())
    monkeypatch.setattr(weather_fetch, "get_weather_service", lambda: WeatherStub(None))

    with pytest.raises(CommandError):
        call_command("weather_fetch", "--station", "5001", stdout=StringIO())


def test_flights_fetch_prints_flights(monkeypatch):
    flight = FlightState("TEST1", 40.6, -73.7, 900.0, distance_to_station_km=8.1)
    monkeypatch.setattr(flights_fetch, "get_flight_service", lambda: FlightStub([flight]))
    out = StringIO()

    call_command("flights_fetch", "--lat", "40.64", "--lon", "-73.78", stdout=out)

    assert json.loads(out.getvalue())[0]["callsign"] == "TEST1"


def test_flights_fetch_reports_rate_limit(monkeypatch):
    monkeypatch.setattr(flights_fetch, "get_flight_service", lambda: FlightStub(error=RateLimited(retry_after_seconds=30)))

    with pytest.raises(CommandError, match="retry after 30"):
        call_command("flights_fetch", "--lat", "40.64", "--lon", "-73.78", stdout=StringIO())
