from __future__ import annotations

from datetime import datetime, timezone

import pytest

from wxrisk.entities import SampleSource
from wxrisk.providers.base import RateLimited, SchemaViolation
from wxrisk.providers.historical import WindBorneProvider

BASE = "https://windborne.test"
HISTORICAL_URL = f"{BASE}/historical_weather"


def make_provider() -> WindBorneProvider:
    return WindBorneProvider(base_url=BASE)


def test_series_is_filtered_and_sorted(requests_mock):
    requests_mock.get(
        HISTORICAL_URL,
        json={
            "points": [
                {"timestamp": "2024-03-21T18:00:00Z", "temperature": 55.0, "wind_x": 3.0, "wind_y": 4.0},
                {"timestamp": "2024-03-21T16:00:00Z", "temperature": 52.0, "pressure": 1012.0},
                {"timestamp": "2024-03-21T17:00:00Z", "temperature": 180.0},
                {"timestamp": "2024-03-21T17:30:00Z", "temperature": None},
            ]
        },
    )

    series = make_provider().historical_weather("5001")

    assert [point.timestamp.hour for point in series] == [16, 18]
    assert all(point.source is SampleSource.HISTORICAL for point in series)
    assert series[0].pressure_hpa == 1012.0
    assert series[1].wind_x == 3.0
    assert series[1].timestamp == datetime(2024, 3, 21, 18, tzinfo=timezone.utc)
    assert requests_mock.last_request.qs == {"station": ["5001"]}


def test_half_wind_vector_is_dropped(requests_mock):
    requests_mock.get(
        HISTORICAL_URL,
        json={"points": [{"timestamp": "2024-03-21T18:00:00Z", "temperature": 55.0, "wind_x": 3.0}]},
    )

    series = make_provider().historical_weather("5001")

    assert series[0].wind_x is None
    assert series[0].wind_y is None


def test_unknown_station_returns_empty_series(requests_mock):
    requests_mock.get(HISTORICAL_URL, status_code=404)

    assert make_provider().historical_weather("nope") == []


def test_malformed_payload_raises_schema_violation(requests_mock):
    requests_mock.get(HISTORICAL_URL, json={"points": "not-a-list"})

    with pytest.raises(SchemaViolation):
        make_provider().historical_weather("5001")


def test_non_json_body_raises_schema_violation(requests_mock):
    requests_mock.get(HISTORICAL_URL, text="<html>maintenance</html>")

    with pytest.raises(SchemaViolation):
        make_provider().historical_weather("5001")


def test_rate_limit_carries_retry_window(requests_mock):
    requests_mock.get(HISTORICAL_URL, status_code=429, headers={"Retry-After": "30"})

    with pytest.raises(RateLimited) as excinfo:
        make_provider().historical_weather("5001")

    assert excinfo.value.retry_after_seconds == 30
    assert excinfo.value.provider == "windborne"


def test_station_list_requires_array(requests_mock):
    requests_mock.get(f"{BASE}/stations", json={"stations": []})

    with pytest.raises(SchemaViolation):
        make_provider().stations()
