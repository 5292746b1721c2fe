"""Historical station archive from the WindBorne surface-observation API."""
from __future__ import annotations

import logging
from typing import List, Optional

from .base import HTTPProvider, NotFound, SchemaViolation
from ..entities import SampleSource, Station, WeatherSample, parse_timestamp
from ..schemas import HistoricalPointRecord, HistoricalWeatherPayload, StationRecord, ValidationError

# plausibility window, in the archive's raw unit (Fahrenheit)
MIN_PLAUSIBLE_TEMPERATURE = -100.0
MAX_PLAUSIBLE_TEMPERATURE = 150.0


class WindBorneProvider(HTTPProvider):
    name = "windborne"
    base_url = "https://sfc.windbornesystems.com"

    def __init__(self, base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url or self.base_url).rstrip("/")
        self._log = logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def stations(self) -> List[Station]:
        response = self._request("GET", f"{self.base_url}/stations")
        data = self._json(response)
        if not isinstance(data, list):
            raise SchemaViolation("station list must be a JSON array")
        try:
            records = [StationRecord.model_validate(item) for item in data]
        except ValidationError as exc:
            self._log.error("Station list failed validation: %s", exc)
            raise SchemaViolation("invalid station list") from exc
        return [
            Station(
                id=record.station_id,
                latitude=record.latitude,
                longitude=record.longitude,
                name=record.station_name,
                elevation_m=record.elevation,
                network=record.station_network,
                timezone=record.timezone,
            )
            for record in records
        ]

    def historical_weather(self, station_id: str) -> List[WeatherSample]:
        """Return the station's archive in ascending timestamp order.

        A 404/400 means the station has no archive and yields an empty list.
        Payloads that fail structural validation raise :class:`SchemaViolation`.
        """
        try:
            response = self._request("GET", f"{self.base_url}/historical_weather", params={"station": station_id})
        except NotFound:
            self._log.warning("Station %s not found or invalid", station_id)
            return []
        data = self._json(response)
        try:
            payload = HistoricalWeatherPayload.model_validate(data)
        except ValidationError as exc:
            self._log.error("Historical weather for %s failed validation: %s", station_id, exc)
            raise SchemaViolation(f"invalid historical weather payload for {station_id}") from exc

        samples = []
        dropped = 0
        for record in payload.points:
            sample = self._build_sample(record)
            if sample is None:
                dropped += 1
                continue
            samples.append(sample)
        if dropped:
            self._log.warning("Discarded %d implausible points for station %s", dropped, station_id)
        if not samples and payload.points:
            self._log.warning("All data points filtered out for station %s", station_id)
        samples.sort(key=lambda sample: sample.timestamp)
        return samples

    # Helpers ------------------------------------------------------------
    def _build_sample(self, record: HistoricalPointRecord) -> Optional[WeatherSample]:
        temperature = record.temperature
        if temperature is None or not MIN_PLAUSIBLE_TEMPERATURE < temperature < MAX_PLAUSIBLE_TEMPERATURE:
            return None
        try:
            timestamp = parse_timestamp(record.timestamp)
        except ValueError:
            return None
        wind_x, wind_y = record.wind_x, record.wind_y
        if wind_x is None or wind_y is None:
            wind_x = wind_y = None
        return WeatherSample(
            timestamp=timestamp,
            source=SampleSource.HISTORICAL,
            temperature_f=temperature,
            dewpoint_f=record.dewpoint,
            pressure_hpa=record.pressure,
            precip_mm=record.precip,
            wind_x=wind_x,
            wind_y=wind_y,
            wind_gust_kt=record.wind_gust,
            wind_direction_deg=record.wind_direction,
            visibility_sm=record.visibility,
        )


__all__ = ["WindBorneProvider", "MAX_PLAUSIBLE_TEMPERATURE", "MIN_PLAUSIBLE_TEMPERATURE"]
