"""Decide whether an aircraft is geometrically inbound to a station."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from .entities import FlightState, Station
from .geo import METERS_TO_FEET, MPS_TO_KNOTS, angle_between, bearing_deg, distance_nm

FAR_BAND_NM = 30.0
FAR_BAND_MAX_ANGLE = 15.0
MID_BAND_NM = 15.0
MID_BAND_MAX_ANGLE = 20.0


class ApproachReason(str, Enum):
    INVALID_DATA = "invalid data"
    TOO_LOW = "too low or landed"
    TOO_FAR = "too far"
    NO_HEADING = "no heading data"
    HEADING_TOWARDS = "heading towards station"
    NOT_HEADING_TOWARDS = "not heading towards station"


@dataclass(frozen=True)
class ApproachConfig:
    max_angle_difference: float = 45.0
    max_distance_nm: float = 100.0
    min_altitude_ft: float = 500.0


@dataclass(frozen=True)
class ApproachAssessment:
    is_approaching: bool
    reason: ApproachReason
    bearing_to_station_deg: Optional[float] = None
    angle_difference_deg: Optional[float] = None
    distance_nm: Optional[float] = None
    eta_minutes: Optional[float] = None

    def as_dict(self) -> dict:
        return {
            "isApproaching": self.is_approaching,
            "reason": self.reason.value,
            "bearingToStation": self.bearing_to_station_deg,
            "angleDifference": self.angle_difference_deg,
            "distance": self.distance_nm,
            "eta": self.eta_minutes,
        }


@dataclass(frozen=True)
class ApproachingFlight:
    flight: FlightState
    approach: ApproachAssessment


def effective_tolerance(distance: float, max_angle_difference: float) -> float:
    """Distant aircraft must be nearly dead-on-course; close-in ones may be maneuvering."""
    if distance > FAR_BAND_NM:
        return min(max_angle_difference, FAR_BAND_MAX_ANGLE)
    if distance > MID_BAND_NM:
        return min(max_angle_difference, MID_BAND_MAX_ANGLE)
    return max_angle_difference


def classify_approach(
    flight: Optional[FlightState],
    station: Optional[Station],
    config: Optional[ApproachConfig] = None,
) -> ApproachAssessment:
    config = config or ApproachConfig()
    if flight is None or station is None or station.latitude is None or station.longitude is None:
        return ApproachAssessment(False, ApproachReason.INVALID_DATA)
    if flight.altitude_m is None:
        return ApproachAssessment(False, ApproachReason.INVALID_DATA)

    if flight.altitude_m * METERS_TO_FEET < config.min_altitude_ft:
        return ApproachAssessment(False, ApproachReason.TOO_LOW)

    bearing = bearing_deg(flight.latitude_deg, flight.longitude_deg, station.latitude, station.longitude)
    distance = distance_nm(flight.latitude_deg, flight.longitude_deg, station.latitude, station.longitude)
    if distance > config.max_distance_nm:
        return ApproachAssessment(False, ApproachReason.TOO_FAR, bearing_to_station_deg=bearing, distance_nm=distance)

    if flight.track_deg is None:
        return ApproachAssessment(False, ApproachReason.NO_HEADING, bearing_to_station_deg=bearing, distance_nm=distance)

    difference = angle_between(flight.track_deg, bearing)
    approaching = difference <= effective_tolerance(distance, config.max_angle_difference)

    eta = None
    if approaching and flight.ground_speed_mps:
        speed_kt = flight.ground_speed_mps * MPS_TO_KNOTS
        if speed_kt > 0:
            eta = distance / speed_kt * 60.0

    return ApproachAssessment(
        is_approaching=approaching,
        reason=ApproachReason.HEADING_TOWARDS if approaching else ApproachReason.NOT_HEADING_TOWARDS,
        bearing_to_station_deg=bearing,
        angle_difference_deg=difference,
        distance_nm=distance,
        eta_minutes=eta,
    )


def filter_approaching(
    flights: Iterable[FlightState],
    station: Station,
    config: Optional[ApproachConfig] = None,
) -> List[ApproachingFlight]:
    """Return the flights inbound to ``station``, nearest first (stable for equal distances)."""
    if station is None:
        return []
    inbound = []
    for flight in flights or ():
        assessment = classify_approach(flight, station, config)
        if assessment.is_approaching:
            inbound.append(ApproachingFlight(flight=flight, approach=assessment))
    return sorted(inbound, key=lambda item: item.approach.distance_nm)


__all__ = [
    "ApproachAssessment",
    "ApproachConfig",
    "ApproachReason",
    "ApproachingFlight",
    "classify_approach",
    "effective_tolerance",
    "filter_approaching",
]
