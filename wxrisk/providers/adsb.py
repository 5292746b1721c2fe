"""adsb.lol radius query, used as the last step of the flight chain."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from .base import HTTPProvider, RequestConfig, SchemaViolation
from ..entities import FlightQuery, FlightState
from ..geo import FEET_TO_METERS, KNOTS_TO_MPS
from ..schemas import AdsbAircraftRecord, AdsbPointPayload, ValidationError

# ~50 km
DEFAULT_RADIUS_NM = 27


class AdsbLolProvider(HTTPProvider):
    """Radius-based aircraft query; altitudes in feet and speeds in knots are converted to SI."""

    name = "adsb-lol"
    base_url = "https://api.adsb.lol/v2/point"
    propagates_rate_limit = False

    def __init__(self, base_url: Optional[str] = None, radius_nm: int = DEFAULT_RADIUS_NM,
                 timeout: float = 10.0, **kwargs) -> None:
        kwargs.setdefault("request_config", RequestConfig(timeout=timeout, retries=0))
        super().__init__(**kwargs)
        self.base_url = (base_url or self.base_url).rstrip("/")
        self.radius_nm = radius_nm
        self._log = logging.getLogger(self.__class__.__name__)

    def fetch(self, query: FlightQuery) -> List[FlightState]:
        url = f"{self.base_url}/{query.latitude:.4f}/{query.longitude:.4f}/{self.radius_nm}"
        response = self._request("GET", url)
        return self.parse_aircraft(self._json(response))

    def parse_aircraft(self, payload: Any) -> List[FlightState]:
        try:
            parsed = AdsbPointPayload.model_validate(payload)
        except ValidationError as exc:
            self._log.error("adsb.lol payload failed validation: %s", exc)
            raise SchemaViolation("invalid adsb.lol payload") from exc
        flights = []
        for record in parsed.ac:
            flight = FlightState.build(
                callsign=record.flight,
                latitude=record.lat,
                longitude=record.lon,
                altitude_m=self._altitude_m(record),
                ground_speed_mps=record.gs * KNOTS_TO_MPS if record.gs is not None else None,
                track_deg=record.track,
                icao24=record.hex,
            )
            if flight is not None:
                flights.append(flight)
        return flights

    @staticmethod
    def _altitude_m(record: AdsbAircraftRecord) -> Optional[float]:
        altitude = record.alt_baro
        if isinstance(altitude, str):
            return 0.0 if altitude.strip().lower() == "ground" else None
        if altitude is None:
            return None
        return altitude * FEET_TO_METERS


__all__ = ["AdsbLolProvider", "DEFAULT_RADIUS_NM"]
