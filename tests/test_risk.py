from __future__ import annotations

from datetime import datetime, timezone

import pytest

from wxrisk.entities import FlightState, SampleSource, WeatherSample
from wxrisk.risk import (
    Confidence,
    FlightStatus,
    RiskLevel,
    assess_flight_risk,
    assess_landing_safety,
    explain_confidence,
    explain_risk,
)


def make_sample(wind_x=None, wind_y=None, gust=None, visibility=None) -> WeatherSample:
    return WeatherSample(
        timestamp=datetime(2024, 3, 21, 18, 0, tzinfo=timezone.utc),
        source=SampleSource.LIVE,
        temperature_f=60.0,
        wind_x=wind_x,
        wind_y=wind_y,
        wind_gust_kt=gust,
        visibility_sm=visibility,
    )


def make_flight(altitude_m: float, speed_mps: float = 60.0) -> FlightState:
    return FlightState(
        callsign="TEST1",
        latitude_deg=40.0,
        longitude_deg=-74.0,
        altitude_m=altitude_m,
        ground_speed_mps=speed_mps,
        track_deg=90.0,
    )


def test_calm_fresh_sample_is_safe():
    result = assess_landing_safety(make_sample(5.0, 0.0, visibility=10.0), data_age_minutes=5)

    assert result.score == 0
    assert result.level is RiskLevel.SAFE
    assert result.confidence is Confidence.HIGH


def test_gust_counts_once_when_it_drives_wind_step():
    sample = make_sample(16.0, 0.0, gust=22.0, visibility=10.0)

    result = assess_landing_safety(sample, data_age_minutes=5)

    assert result.score == 1
    assert result.level is RiskLevel.CAUTION
    assert result.confidence is Confidence.LOW
    assert not any("Significant wind gusts" in factor for factor in result.factors)


def test_gust_spread_penalty_applies_under_moderate_wind():
    sample = make_sample(5.0, 0.0, gust=11.0, visibility=10.0)

    result = assess_landing_safety(sample, data_age_minutes=5)

    assert result.score == 1
    assert "Significant wind gusts: 11.0 kt" in result.factors


def test_high_wind_alone_is_caution():
    sample = make_sample(26.0, 0.0, visibility=10.0)

    result = assess_landing_safety(sample, data_age_minutes=5)

    assert result.score == 3
    assert result.level is RiskLevel.CAUTION
    assert result.confidence is Confidence.HIGH


def test_high_wind_with_unknown_age_is_danger():
    result = assess_landing_safety(make_sample(26.0, 0.0))

    assert result.score == 4
    assert result.level is RiskLevel.DANGER
    assert "Data age unknown" in result.factors


def test_gust_override_argument_replaces_sample_gust():
    sample = make_sample(10.0, 0.0, gust=12.0, visibility=10.0)

    result = assess_landing_safety(sample, data_age_minutes=5, wind_gust_kt=30.0)

    assert result.score == 3
    assert result.wind_gust_kt == 30.0


@pytest.mark.parametrize("visibility, points", [(0.0, 2), (0.5, 2), (2.0, 1), (3.0, 0)])
def test_visibility_penalties(visibility, points):
    result = assess_landing_safety(make_sample(0.0, 0.0, visibility=visibility), data_age_minutes=5)

    assert result.score == points


def test_missing_wind_and_stale_data_penalties():
    result = assess_landing_safety(make_sample(visibility=10.0), data_age_minutes=90)

    assert result.score == 3
    assert "Wind data unavailable" in result.factors
    assert "Stale data: 90 min old" in result.factors
    assert result.confidence is Confidence.MEDIUM


def test_missing_sample_is_unknown():
    result = assess_landing_safety(None)

    assert result.level is RiskLevel.UNKNOWN
    assert result.confidence is Confidence.LOW


def test_assessment_is_idempotent():
    sample = make_sample(18.0, 4.0, gust=27.0, visibility=2.5)

    first = assess_landing_safety(sample, data_age_minutes=40)
    second = assess_landing_safety(sample, data_age_minutes=40)

    assert first == second


def test_flight_on_ground_is_landed():
    result = assess_flight_risk(make_flight(0.0), make_sample(30.0, 0.0, visibility=0.5), data_age_minutes=5)

    assert result.level is RiskLevel.LANDED
    assert result.flight_status is FlightStatus.LANDED
    assert result.weather_assessment is None
    assert result.confidence is Confidence.MEDIUM


def test_flight_below_critical_altitude_is_danger():
    result = assess_flight_risk(make_flight(100.0))

    assert result.operational_risk is RiskLevel.DANGER
    assert result.flight_status is FlightStatus.CRITICAL
    assert result.score == 0


def test_high_wind_at_low_altitude_forces_danger():
    # ~820 ft, wind 26 kt from a fresh sample
    result = assess_flight_risk(make_flight(250.0), make_sample(26.0, 0.0, visibility=10.0), data_age_minutes=5)

    assert result.level is RiskLevel.DANGER
    assert "High winds at low altitude - extreme danger" in result.factors
    assert result.weather_risk is RiskLevel.CAUTION


def test_poor_visibility_at_low_altitude_escalates():
    # ~820 ft is a Caution altitude band; visibility below 1 SM escalates once
    result = assess_flight_risk(make_flight(250.0), make_sample(0.0, 0.0, visibility=0.5), data_age_minutes=5)

    assert result.level is RiskLevel.DANGER
    assert "Poor visibility during approach" in result.factors


def test_cruise_flight_inherits_weather_level():
    result = assess_flight_risk(make_flight(3000.0), make_sample(20.0, 0.0, visibility=2.0), data_age_minutes=5)

    assert result.operational_risk is RiskLevel.SAFE
    assert result.level is RiskLevel.CAUTION
    assert result.confidence is Confidence.HIGH
    assert result.altitude_ft == pytest.approx(9842.52, rel=1e-4)


def test_explanations_cover_every_level():
    for level in RiskLevel:
        assert set(explain_risk(level)) == {"title", "description", "action"}
    assert explain_confidence(Confidence.LOW).endswith("use caution")
