from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SampleSource(str, Enum):
    LIVE = "Live"
    HISTORICAL = "Historical"
    FUSED = "Fused"


class SourcePreference(str, Enum):
    LIVE = "Live"
    HISTORICAL = "Historical"
    HYBRID = "Hybrid"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SourcePreference":
        """Map loose user input (``metar``, ``windborne``, ...) onto a preference."""
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        if normalized in ("live", "metar"):
            return cls.LIVE
        if normalized in ("historical", "windborne"):
            return cls.HISTORICAL
        return cls.HYBRID


@dataclass(frozen=True)
class Station:
    id: str
    latitude: float
    longitude: float
    name: Optional[str] = None
    elevation_m: Optional[float] = None
    network: Optional[str] = None
    timezone: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Station":
        return cls(**payload)


@dataclass(frozen=True)
class WeatherSample:
    """A single observation at a timestamp.

    Units follow the upstream aviation conventions:
    - temperature and dewpoint in Fahrenheit
    - pressure in hectopascal (hPa)
    - precipitation in millimetres (mm)
    - wind components (east ``wind_x``, north ``wind_y``) and gusts in knots
    - wind direction in degrees, meteorological FROM-direction
    - visibility in statute miles
    """

    timestamp: datetime
    source: SampleSource
    temperature_f: Optional[float] = None
    dewpoint_f: Optional[float] = None
    pressure_hpa: Optional[float] = None
    precip_mm: Optional[float] = None
    wind_x: Optional[float] = None
    wind_y: Optional[float] = None
    wind_gust_kt: Optional[float] = None
    wind_direction_deg: Optional[float] = None
    visibility_sm: Optional[float] = None

    def __post_init__(self) -> None:
        if (self.wind_x is None) != (self.wind_y is None):
            raise ValueError("wind_x and wind_y must both be present or both be absent")
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    @property
    def has_wind(self) -> bool:
        return self.wind_x is not None

    def merged_with(self, fallback: "WeatherSample") -> "WeatherSample":
        """Overlay this sample on ``fallback``; fields missing here are taken from it."""
        values = {}
        for name in _MEASUREMENT_FIELDS:
            value = getattr(self, name)
            values[name] = value if value is not None else getattr(fallback, name)
        if not self.has_wind:
            values["wind_x"], values["wind_y"] = fallback.wind_x, fallback.wind_y
        else:
            values["wind_x"], values["wind_y"] = self.wind_x, self.wind_y
        return replace(self, source=SampleSource.FUSED, **values)

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["timestamp"] = format_timestamp(self.timestamp)
        payload["source"] = self.source.value
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "WeatherSample":
        values = dict(payload)
        values["timestamp"] = parse_timestamp(values["timestamp"])
        values["source"] = SampleSource(values["source"])
        return cls(**values)


_MEASUREMENT_FIELDS = (
    "temperature_f",
    "dewpoint_f",
    "pressure_hpa",
    "precip_mm",
    "wind_gust_kt",
    "wind_direction_deg",
    "visibility_sm",
)


@dataclass(frozen=True)
class UnifiedWeather:
    """Fusion output for a station: the browsing series plus the chosen current sample."""

    station_id: str
    points: Tuple[WeatherSample, ...]
    current: WeatherSample
    data_age_minutes: Optional[int]
    is_real_time: bool
    source_label: str
    live_attempted: bool = False
    live_unavailable: bool = False
    live_identifier: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "station": self.station_id,
            "points": [point.as_dict() for point in self.points],
            "current": self.current.as_dict(),
            "dataAgeMinutes": self.data_age_minutes,
            "isRealTime": self.is_real_time,
            "source": self.source_label,
            "liveAttempted": self.live_attempted,
            "liveUnavailable": self.live_unavailable,
            "liveIdentifier": self.live_identifier,
        }


@dataclass(frozen=True)
class FlightState:
    callsign: Optional[str]
    latitude_deg: float
    longitude_deg: float
    altitude_m: float
    ground_speed_mps: Optional[float] = None
    track_deg: Optional[float] = None
    distance_to_station_km: Optional[float] = None
    icao24: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude_deg <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude_deg}")
        if not -180.0 <= self.longitude_deg <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude_deg}")

    @classmethod
    def build(
        cls,
        *,
        callsign: Any,
        latitude: Any,
        longitude: Any,
        altitude_m: Any,
        ground_speed_mps: Any = None,
        track_deg: Any = None,
        icao24: Any = None,
    ) -> Optional["FlightState"]:
        """Create a state from raw upstream values, or ``None`` when the record is unusable."""
        lat = _strict_number(latitude)
        lng = _strict_number(longitude)
        altitude = _strict_number(altitude_m)
        if lat is None or lng is None or altitude is None:
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None
        name = callsign.strip() if isinstance(callsign, str) else None
        return cls(
            callsign=name or None,
            latitude_deg=lat,
            longitude_deg=lng,
            altitude_m=altitude,
            ground_speed_mps=_strict_number(ground_speed_mps),
            track_deg=_strict_number(track_deg),
            icao24=icao24 if isinstance(icao24, str) else None,
        )

    def with_distance(self, distance_km: float) -> "FlightState":
        return replace(self, distance_to_station_km=distance_km)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FlightState":
        return cls(**payload)


@dataclass(frozen=True)
class FlightQuery:
    """A point around which live aircraft are requested."""

    latitude: float
    longitude: float
    box_deg: float = 0.5

    @property
    def bounding_box(self) -> Dict[str, float]:
        return {
            "lamin": self.latitude - self.box_deg,
            "lomin": self.longitude - self.box_deg,
            "lamax": self.latitude + self.box_deg,
            "lomax": self.longitude + self.box_deg,
        }


def _strict_number(value: Any) -> Optional[float]:
    # bool is an int subclass; upstream flags must never pass as coordinates
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    if number != number:  # NaN
        return None
    return number


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = [
    "FlightQuery",
    "FlightState",
    "SampleSource",
    "SourcePreference",
    "Station",
    "UnifiedWeather",
    "WeatherSample",
    "format_timestamp",
    "parse_timestamp",
]
