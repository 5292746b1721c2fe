"""Risk scoring for landing conditions and individual flights."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .entities import FlightState, WeatherSample
from .geo import METERS_TO_FEET, MPS_TO_KNOTS, wind_to_polar

HIGH_WIND_KT = 25.0
MODERATE_WIND_KT = 15.0
GUST_SPREAD_KT = 5.0
POOR_VISIBILITY_SM = 1.0
REDUCED_VISIBILITY_SM = 3.0
STALE_DATA_MINUTES = 60
AGING_DATA_MINUTES = 30
CRITICAL_ALTITUDE_FT = 500.0
LOW_ALTITUDE_FT = 1000.0
FAST_AT_LOW_ALTITUDE_KT = 100.0


class RiskLevel(str, Enum):
    SAFE = "Safe"
    CAUTION = "Caution"
    DANGER = "Danger"
    LANDED = "Landed"
    UNKNOWN = "Unknown"


class Confidence(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class FlightStatus(str, Enum):
    NORMAL = "Normal"
    LOW = "Low"
    CRITICAL = "Critical"
    LANDED = "Landed"
    UNKNOWN = "Unknown"


_SEVERITY = {RiskLevel.SAFE: 0, RiskLevel.CAUTION: 1, RiskLevel.DANGER: 2}


@dataclass(frozen=True)
class RiskAssessment:
    level: RiskLevel
    confidence: Confidence
    score: int
    factors: Tuple[str, ...]
    wind_speed_kt: Optional[float] = None
    wind_gust_kt: Optional[float] = None
    visibility_sm: Optional[float] = None
    data_age_minutes: Optional[int] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "risk": self.level.value,
            "confidence": self.confidence.value,
            "riskScore": self.score,
            "factors": list(self.factors),
            "windSpeed": self.wind_speed_kt,
            "windGust": self.wind_gust_kt,
            "visibility": self.visibility_sm,
            "dataAge": self.data_age_minutes,
        }


@dataclass(frozen=True)
class FlightRiskAssessment(RiskAssessment):
    operational_risk: RiskLevel = RiskLevel.UNKNOWN
    weather_risk: Optional[RiskLevel] = None
    flight_status: FlightStatus = FlightStatus.UNKNOWN
    altitude_ft: Optional[float] = None
    speed_kt: Optional[float] = None
    weather_assessment: Optional[RiskAssessment] = field(default=None, repr=False)

    def as_dict(self) -> Dict[str, object]:
        payload = super().as_dict()
        payload.update(
            {
                "operationalRisk": self.operational_risk.value,
                "weatherRisk": self.weather_risk.value if self.weather_risk else None,
                "flightStatus": self.flight_status.value,
                "altitude": self.altitude_ft,
                "speed": self.speed_kt,
                "weatherAssessment": self.weather_assessment.as_dict() if self.weather_assessment else None,
            }
        )
        return payload


def assess_landing_safety(
    sample: Optional[WeatherSample],
    data_age_minutes: Optional[int] = None,
    wind_gust_kt: Optional[float] = None,
) -> RiskAssessment:
    """Score a weather sample for landing risk.

    The score is additive: wind (0, +1 or +3), a gust-spread penalty that only
    applies when the wind step stayed at or below the moderate threshold,
    +1 for missing wind, visibility (+1/+2) and data age (+1/+2, +1 when the
    age is unknown).  ``wind_gust_kt`` overrides the gust carried by the sample.
    """
    if sample is None:
        return RiskAssessment(
            level=RiskLevel.UNKNOWN,
            confidence=Confidence.LOW,
            score=0,
            factors=("No weather data available",),
            data_age_minutes=data_age_minutes,
        )

    gust = wind_gust_kt if wind_gust_kt is not None else sample.wind_gust_kt
    visibility = sample.visibility_sm
    wind = wind_to_polar(sample.wind_x, sample.wind_y)
    factors: List[str] = []
    score = 0

    if wind is not None:
        speed = wind.speed_kt
        gusting = gust is not None and gust > speed
        effective = gust if gusting else speed
        wind_points = 0
        if effective > HIGH_WIND_KT:
            wind_points = 3
            if gusting:
                factors.append(f"Base wind: {speed:.1f} kt, Gusts: {gust:.1f} kt (HIGH)")
            else:
                factors.append(f"High wind speed: {effective:.1f} kt")
        elif effective > MODERATE_WIND_KT:
            wind_points = 1
            if gusting:
                factors.append(f"Base wind: {speed:.1f} kt, Gusts: {gust:.1f} kt")
            else:
                factors.append(f"Moderate wind speed: {effective:.1f} kt")
        else:
            factors.append(f"Wind speed OK: {effective:.1f} kt")
        score += wind_points

        # the gust already drove the wind step when it took the >15 kt branch
        if gust is not None and gust > speed + GUST_SPREAD_KT and wind_points == 0:
            score += 1
            factors.append(f"Significant wind gusts: {gust:.1f} kt")
    else:
        score += 1
        factors.append("Wind data unavailable")

    if visibility is not None:
        if visibility < POOR_VISIBILITY_SM:
            score += 2
            factors.append(f"Poor visibility: {visibility:.1f} SM")
        elif visibility < REDUCED_VISIBILITY_SM:
            score += 1
            factors.append(f"Reduced visibility: {visibility:.1f} SM")
        else:
            factors.append(f"Visibility OK: {visibility:.1f} SM")

    if data_age_minutes is not None:
        if data_age_minutes > STALE_DATA_MINUTES:
            score += 2
            factors.append(f"Stale data: {data_age_minutes} min old")
        elif data_age_minutes > AGING_DATA_MINUTES:
            score += 1
            factors.append(f"Data age: {data_age_minutes} min")
        else:
            factors.append(f"Recent data: {data_age_minutes} min old")
    else:
        score += 1
        factors.append("Data age unknown")

    fresh = data_age_minutes is not None and data_age_minutes < AGING_DATA_MINUTES
    if score >= 4:
        level, confidence = RiskLevel.DANGER, Confidence.HIGH
    elif score >= 2:
        level, confidence = RiskLevel.CAUTION, Confidence.HIGH if fresh else Confidence.MEDIUM
    elif score == 1:
        level, confidence = RiskLevel.CAUTION, Confidence.LOW
    else:
        level, confidence = RiskLevel.SAFE, Confidence.HIGH if fresh else Confidence.MEDIUM

    return RiskAssessment(
        level=level,
        confidence=confidence,
        score=score,
        factors=tuple(factors),
        wind_speed_kt=wind.speed_kt if wind is not None else None,
        wind_gust_kt=gust,
        visibility_sm=visibility,
        data_age_minutes=data_age_minutes,
    )


def assess_flight_risk(
    flight: Optional[FlightState],
    sample: Optional[WeatherSample] = None,
    data_age_minutes: Optional[int] = None,
) -> FlightRiskAssessment:
    """Combine altitude-band operational risk with the weather at the flight's location."""
    if flight is None:
        return FlightRiskAssessment(
            level=RiskLevel.UNKNOWN,
            confidence=Confidence.LOW,
            score=0,
            factors=("No flight data available",),
        )

    altitude_ft = flight.altitude_m * METERS_TO_FEET
    speed_kt = flight.ground_speed_mps * MPS_TO_KNOTS if flight.ground_speed_mps else 0.0
    factors: List[str] = []

    if flight.altitude_m <= 0:
        status, operational = FlightStatus.LANDED, RiskLevel.LANDED
        factors.append("Aircraft on ground")
    elif altitude_ft < CRITICAL_ALTITUDE_FT:
        status, operational = FlightStatus.CRITICAL, RiskLevel.DANGER
        factors.append(f"Critical altitude: {altitude_ft:.0f} ft")
    elif altitude_ft < LOW_ALTITUDE_FT:
        status, operational = FlightStatus.LOW, RiskLevel.CAUTION
        if speed_kt > FAST_AT_LOW_ALTITUDE_KT:
            factors.append(f"Low altitude with high speed: {altitude_ft:.0f} ft at {speed_kt:.0f} kt")
        else:
            factors.append(f"Low altitude: {altitude_ft:.0f} ft")
    else:
        status, operational = FlightStatus.NORMAL, RiskLevel.SAFE
        factors.append(f"Normal altitude: {altitude_ft:.0f} ft")

    combined = operational
    confidence = Confidence.MEDIUM
    weather: Optional[RiskAssessment] = None

    if sample is not None and operational is not RiskLevel.LANDED:
        weather = assess_landing_safety(sample, data_age_minutes)
        confidence = weather.confidence
        if _SEVERITY.get(weather.level, 0) > _SEVERITY[combined]:
            combined = weather.level
            factors.append(f"Weather conditions: {weather.level.value}")

        low = altitude_ft < LOW_ALTITUDE_FT
        wind_speed = weather.wind_speed_kt
        if low and wind_speed is not None and wind_speed > HIGH_WIND_KT:
            combined = RiskLevel.DANGER
            factors.append("High winds at low altitude - extreme danger")
        elif low and wind_speed is not None and wind_speed > MODERATE_WIND_KT:
            if combined is RiskLevel.SAFE:
                combined = RiskLevel.CAUTION
                factors.append("Moderate winds at low altitude")

        if low and weather.visibility_sm is not None and weather.visibility_sm < POOR_VISIBILITY_SM:
            combined = _escalate(combined)
            factors.append("Poor visibility during approach")

    return FlightRiskAssessment(
        level=combined,
        confidence=confidence,
        score=weather.score if weather is not None else 0,
        factors=tuple(factors),
        wind_speed_kt=weather.wind_speed_kt if weather else None,
        wind_gust_kt=weather.wind_gust_kt if weather else None,
        visibility_sm=weather.visibility_sm if weather else None,
        data_age_minutes=data_age_minutes,
        operational_risk=operational,
        weather_risk=weather.level if weather else None,
        flight_status=status,
        altitude_ft=altitude_ft,
        speed_kt=speed_kt,
        weather_assessment=weather,
    )


def _escalate(level: RiskLevel) -> RiskLevel:
    if level is RiskLevel.SAFE:
        return RiskLevel.CAUTION
    if level is RiskLevel.CAUTION:
        return RiskLevel.DANGER
    return level


_RISK_EXPLANATIONS: Dict[RiskLevel, Dict[str, str]] = {
    RiskLevel.SAFE: {
        "title": "Safe Conditions",
        "description": "Weather and operational conditions are favorable for flight operations.",
        "action": "Normal operations may proceed with standard precautions.",
    },
    RiskLevel.CAUTION: {
        "title": "Caution Required",
        "description": "Conditions require increased awareness and may challenge less experienced pilots.",
        "action": "Evaluate individual factors carefully. Consider delaying non-essential flights.",
    },
    RiskLevel.DANGER: {
        "title": "Dangerous Conditions",
        "description": "Conditions pose significant risks to flight operations.",
        "action": "Avoid flight operations unless absolutely necessary and properly equipped.",
    },
    RiskLevel.LANDED: {
        "title": "Aircraft on Ground",
        "description": "Aircraft is on the ground or at ground level.",
        "action": "No flight risk assessment applicable.",
    },
    RiskLevel.UNKNOWN: {
        "title": "Unknown Conditions",
        "description": "Insufficient data to make a reliable assessment.",
        "action": "Exercise extreme caution. Obtain current weather information.",
    },
}

_CONFIDENCE_EXPLANATIONS: Dict[Confidence, str] = {
    Confidence.HIGH: "Based on recent, complete data",
    Confidence.MEDIUM: "Based on aging data or partial information",
    Confidence.LOW: "Based on limited or stale data - use caution",
}


def explain_risk(level: RiskLevel) -> Dict[str, str]:
    return dict(_RISK_EXPLANATIONS.get(level, _RISK_EXPLANATIONS[RiskLevel.UNKNOWN]))


def explain_confidence(confidence: Confidence) -> str:
    return _CONFIDENCE_EXPLANATIONS.get(confidence, "Unknown confidence level")


__all__ = [
    "Confidence",
    "FlightRiskAssessment",
    "FlightStatus",
    "RiskAssessment",
    "RiskLevel",
    "assess_flight_risk",
    "assess_landing_safety",
    "explain_confidence",
    "explain_risk",
]
