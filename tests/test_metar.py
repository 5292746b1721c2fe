from __future__ import annotations

from datetime import datetime, timezone

import pytest
import responses
from responses import matchers

from wxrisk.entities import SampleSource
from wxrisk.geo import wind_to_polar
from wxrisk.providers.base import RateLimited, RequestConfig, UpstreamUnavailable
from wxrisk.providers.metar import AviationWeatherProvider, parse_metar

METAR_URL = "https://awc.test/api/data/metar"
NOW = datetime(2024, 3, 21, 19, 0, tzinfo=timezone.utc)
JFK_METAR = "KJFK 211851Z 28015G25KT 10SM FEW250 12/08 A3015"


def make_provider() -> AviationWeatherProvider:
    return AviationWeatherProvider(
        base_url=METAR_URL, now_func=lambda: NOW, request_config=RequestConfig(retries=0)
    )


def ids_matcher(identifier: str):
    return matchers.query_param_matcher({"ids": identifier, "format": "raw", "hours": "1"})


def test_parse_us_metar():
    report = parse_metar(JFK_METAR, now=NOW)

    assert report.station == "KJFK"
    assert report.observed_at == datetime(2024, 3, 21, 18, 51, tzinfo=timezone.utc)
    assert report.wind_direction_deg == 280.0
    assert report.wind_speed_kt == 15.0
    assert report.wind_gust_kt == 25.0
    assert report.visibility_sm == 10.0
    assert report.temperature_f == pytest.approx(53.6)
    assert report.dewpoint_f == pytest.approx(46.4)
    assert report.pressure_hpa == 1021.0


def test_parse_metric_metar():
    report = parse_metar("EGLL 211850Z VRB03KT 9999 M02/M05 Q1013", now=NOW)

    assert report.wind_direction_deg is None
    assert report.wind_speed_kt == 3.0
    assert report.visibility_sm == pytest.approx(6.21, abs=0.01)
    assert report.temperature_f == pytest.approx(28.4)
    assert report.dewpoint_f == pytest.approx(23.0)
    assert report.pressure_hpa == 1013.0


@pytest.mark.parametrize(
    "text, visibility",
    [
        ("KSFO 211856Z 30008KT 1 1/2SM BR OVC004 11/10 A3001", 1.5),
        ("KSFO 211856Z 30008KT 1/4SM FG VV001 11/11 A3001", 0.25),
        ("KDEN 211853Z 16006KT P6SM SCT100 18/M03 A2995", 6.0),
    ],
)
def test_parse_statute_mile_visibility(text, visibility):
    assert parse_metar(text, now=NOW).visibility_sm == pytest.approx(visibility)


def test_observation_time_rolls_back_a_month():
    now = datetime(2024, 4, 1, 0, 30, tzinfo=timezone.utc)

    report = parse_metar("KJFK 312350Z 00000KT 10SM CLR 05/M01 A3020", now=now)

    assert report.observed_at == datetime(2024, 3, 31, 23, 50, tzinfo=timezone.utc)


def test_parse_rejects_empty_text():
    assert parse_metar("") is None
    assert parse_metar("   ") is None


def test_latest_returns_live_sample_with_wind_components():
    provider = make_provider()
    with responses.RequestsMock() as rsps:
        rsps.add("GET", METAR_URL, body=JFK_METAR + "\n", status=200, match=[ids_matcher("KJFK")])
        sample = provider.latest("KJFK")

    assert sample.source is SampleSource.LIVE
    assert sample.timestamp == datetime(2024, 3, 21, 18, 51, tzinfo=timezone.utc)
    assert sample.wind_gust_kt == 25.0
    assert wind_to_polar(sample.wind_x, sample.wind_y).speed_kt == pytest.approx(15.0)


def test_three_letter_code_tries_k_prefix_first():
    provider = make_provider()
    with responses.RequestsMock() as rsps:
        rsps.add("GET", METAR_URL, status=404, match=[ids_matcher("KSEA")])
        rsps.add("GET", METAR_URL, body="SEA 211853Z 18005KT 10SM 10/05 A3000", match=[ids_matcher("SEA")])
        sample = provider.latest("SEA")
        assert len(rsps.calls) == 2

    assert sample is not None
    assert sample.temperature_f == pytest.approx(50.0)


def test_empty_body_means_no_observation():
    provider = make_provider()
    with responses.RequestsMock() as rsps:
        rsps.add("GET", METAR_URL, body="", match=[ids_matcher("KXYZ")])
        assert provider.latest("KXYZ") is None


def test_invalid_identifier_makes_no_request():
    provider = make_provider()
    with responses.RequestsMock() as rsps:
        assert provider.latest("not-a-code") is None
        assert len(rsps.calls) == 0


def test_nearest_uses_bounding_box():
    provider = make_provider()
    bbox = "40.1400,-74.2800,41.1400,-73.2800"
    with responses.RequestsMock() as rsps:
        rsps.add(
            "GET",
            METAR_URL,
            body=JFK_METAR,
            match=[matchers.query_param_matcher({"bbox": bbox, "format": "raw", "hours": "1"})],
        )
        sample = provider.nearest(40.64, -73.78)

    assert sample.visibility_sm == 10.0


def test_server_errors_and_rate_limits_are_mapped():
    provider = make_provider()
    with responses.RequestsMock() as rsps:
        rsps.add("GET", METAR_URL, status=503, match=[ids_matcher("KJFK")])
        with pytest.raises(UpstreamUnavailable):
            provider.latest("KJFK")

    with responses.RequestsMock() as rsps:
        rsps.add("GET", METAR_URL, status=429, headers={"Retry-After": "120"}, match=[ids_matcher("KJFK")])
        with pytest.raises(RateLimited) as excinfo:
            provider.latest("KJFK")

    assert excinfo.value.retry_after_seconds == 120
