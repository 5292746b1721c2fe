"""Live surface observations from the aviationweather.gov METAR API."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .base import HTTPProvider, NotFound
from ..entities import SampleSource, WeatherSample
from ..geo import wind_components

METERS_PER_STATUTE_MILE = 1609.344
INHG_TO_HPA = 33.8639

_STATION_RE = re.compile(r"^(?:METAR\s+|SPECI\s+)?([A-Z][A-Z0-9]{3})\s")
_TIME_RE = re.compile(r"\s(\d{2})(\d{2})(\d{2})Z(?=\s)")
_WIND_RE = re.compile(r"(?:^|\s)(\d{3}|VRB)(\d{2,3})(?:G(\d{2,3}))?KT(?=\s|$)")
_VARIABLE_WIND_RE = re.compile(r"^\d{3}V\d{3}$")
_METRIC_VIS_RE = re.compile(r"^(\d{4})$")
_VIS_SM_RE = re.compile(r"(?:^|\s)[PM]?(?:(\d+)\s)?(\d+)(?:/(\d+))?SM(?=\s|$)")
_TEMP_RE = re.compile(r"(?:^|\s)(M?\d{2})/(M?\d{2})?(?=\s|$)")
_PRESSURE_RE = re.compile(r"(?:^|\s)([AQ])(\d{4})(?=\s|$)")


@dataclass(frozen=True)
class MetarReport:
    raw: str
    station: Optional[str] = None
    observed_at: Optional[datetime] = None
    wind_direction_deg: Optional[float] = None
    wind_speed_kt: Optional[float] = None
    wind_gust_kt: Optional[float] = None
    visibility_sm: Optional[float] = None
    temperature_f: Optional[float] = None
    dewpoint_f: Optional[float] = None
    pressure_hpa: Optional[float] = None

    def to_sample(self, fetched_at: datetime) -> WeatherSample:
        wind_x, wind_y = wind_components(self.wind_direction_deg, self.wind_speed_kt)
        return WeatherSample(
            timestamp=self.observed_at or fetched_at,
            source=SampleSource.LIVE,
            temperature_f=self.temperature_f,
            dewpoint_f=self.dewpoint_f,
            pressure_hpa=self.pressure_hpa,
            wind_x=wind_x,
            wind_y=wind_y,
            wind_gust_kt=self.wind_gust_kt,
            wind_direction_deg=self.wind_direction_deg,
            visibility_sm=self.visibility_sm,
        )


def parse_metar(text: str, now: Optional[datetime] = None) -> Optional[MetarReport]:
    """Parse one raw METAR line, e.g. ``KJFK 211851Z 28015G25KT 10SM FEW250 12/08 A3015``."""
    if not text or not isinstance(text, str):
        return None
    raw = " ".join(text.split())
    if not raw:
        return None
    now = now or datetime.now(timezone.utc)
    padded = f" {raw} "

    station_match = _STATION_RE.match(raw + " ")
    observed_at = None
    time_match = _TIME_RE.search(padded)
    if time_match:
        day, hour, minute = (int(group) for group in time_match.groups())
        observed_at = _observation_time(day, hour, minute, now)

    direction = speed = gust = None
    visibility = None
    wind_match = _WIND_RE.search(raw)
    if wind_match:
        direction = None if wind_match.group(1) == "VRB" else float(wind_match.group(1))
        speed = float(wind_match.group(2))
        gust = float(wind_match.group(3)) if wind_match.group(3) else None
        visibility = _metric_visibility(raw[wind_match.end():])

    vis_match = _VIS_SM_RE.search(raw)
    if vis_match:
        whole, numerator, denominator = vis_match.groups()
        value = float(numerator)
        if denominator:
            value = value / float(denominator)
        if whole:
            value += float(whole)
        visibility = value

    temperature = dewpoint = None
    temp_match = _TEMP_RE.search(raw)
    if temp_match:
        temperature = _celsius_to_fahrenheit(_metar_celsius(temp_match.group(1)))
        if temp_match.group(2):
            dewpoint = _celsius_to_fahrenheit(_metar_celsius(temp_match.group(2)))

    pressure = None
    pressure_match = _PRESSURE_RE.search(raw)
    if pressure_match:
        value = int(pressure_match.group(2))
        if pressure_match.group(1) == "A":
            pressure = float(round(value / 100 * INHG_TO_HPA))
        else:
            pressure = float(value)

    return MetarReport(
        raw=raw,
        station=station_match.group(1) if station_match else None,
        observed_at=observed_at,
        wind_direction_deg=direction,
        wind_speed_kt=speed,
        wind_gust_kt=gust,
        visibility_sm=visibility,
        temperature_f=temperature,
        dewpoint_f=dewpoint,
        pressure_hpa=pressure,
    )


def _observation_time(day: int, hour: int, minute: int, now: datetime) -> datetime:
    """Resolve a ``ddhhmmZ`` group to the most recent matching instant not after now."""
    year, month = now.year, now.month
    for _ in range(3):
        try:
            candidate = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
        except ValueError:
            candidate = None
        if candidate is not None and candidate <= now + timedelta(hours=1):
            return candidate
        year, month = (year, month - 1) if month > 1 else (year - 1, 12)
    return now


def _metric_visibility(remainder: str) -> Optional[float]:
    tokens = remainder.split()
    if tokens and _VARIABLE_WIND_RE.match(tokens[0]):
        tokens = tokens[1:]
    if tokens and _METRIC_VIS_RE.match(tokens[0]):
        meters = int(tokens[0])
        if meters == 9999:
            meters = 10000
        return round(meters / METERS_PER_STATUTE_MILE, 2)
    return None


def _metar_celsius(value: str) -> float:
    return -float(value[1:]) if value.startswith("M") else float(value)


def _celsius_to_fahrenheit(value: float) -> float:
    return value * 9 / 5 + 32


class AviationWeatherProvider(HTTPProvider):
    """Fetches and parses the newest METAR for a station or an area."""

    name = "aviationweather"
    base_url = "https://aviationweather.gov/api/data/metar"
    search_box_deg = 0.5

    def __init__(
        self,
        base_url: Optional[str] = None,
        now_func: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url or self.base_url
        self._now = now_func or (lambda: datetime.now(timezone.utc))
        self._log = logging.getLogger(self.__class__.__name__)

    def latest(self, identifier: str) -> Optional[WeatherSample]:
        """Newest observation for an ICAO-style identifier, or ``None`` if there is none."""
        code = (identifier or "").strip().upper()
        if not re.fullmatch(r"[A-Z0-9]{3,4}", code):
            self._log.info("Invalid ICAO code format: %r", identifier)
            return None
        candidates = [f"K{code}", code] if len(code) == 3 else [code]
        for candidate in candidates:
            try:
                sample = self._fetch({"ids": candidate, "format": "raw", "hours": 1})
            except NotFound:
                continue
            if sample is not None:
                return sample
        return None

    def nearest(self, latitude: float, longitude: float) -> Optional[WeatherSample]:
        """Newest observation from any station inside a small box around the point."""
        box = self.search_box_deg
        bbox = f"{latitude - box:.4f},{longitude - box:.4f},{latitude + box:.4f},{longitude + box:.4f}"
        try:
            return self._fetch({"bbox": bbox, "format": "raw", "hours": 1})
        except NotFound:
            return None

    def _fetch(self, params: dict) -> Optional[WeatherSample]:
        response = self._request("GET", self.base_url, params=params)
        lines = self._metar_lines(response.text)
        if not lines:
            self._log.info("No METAR returned for %s", params)
            return None
        now = self._now()
        report = parse_metar(lines[0], now=now)
        if report is None:
            return None
        return report.to_sample(fetched_at=now)

    @staticmethod
    def _metar_lines(text: str) -> List[str]:
        return [line.strip() for line in (text or "").splitlines() if line.strip()]


__all__ = ["AviationWeatherProvider", "MetarReport", "parse_metar"]
