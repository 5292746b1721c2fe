"""Structural validation of upstream payloads."""
from __future__ import annotations

import json
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

__all__ = [
    "AdsbAircraftRecord",
    "AdsbPointPayload",
    "HistoricalPointRecord",
    "HistoricalWeatherPayload",
    "OpenSkyStatesPayload",
    "StationRecord",
    "ValidationError",
    "unwrap_relay_payload",
]


class StationRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    station_id: str
    latitude: float
    longitude: float
    elevation: Optional[float] = None
    station_name: Optional[str] = None
    station_network: Optional[str] = None
    timezone: Optional[str] = None


class HistoricalPointRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timestamp: str
    temperature: Optional[float] = None
    wind_x: Optional[float] = None
    wind_y: Optional[float] = None
    dewpoint: Optional[float] = None
    pressure: Optional[float] = None
    precip: Optional[float] = None
    wind_gust: Optional[float] = None
    wind_direction: Optional[float] = None
    visibility: Optional[float] = None


class HistoricalWeatherPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    points: List[HistoricalPointRecord]


class OpenSkyStatesPayload(BaseModel):
    """``/api/states/all`` response; each state is a positional vector.

    Only the outer structure is enforced here.  Individual values inside a
    state vector are checked during normalization so a single bad record
    does not discard the whole response.
    """

    model_config = ConfigDict(extra="ignore")

    time: int
    states: Optional[List[List[Any]]] = None

    @field_validator("states")
    @classmethod
    def _states_have_positions(cls, value: Optional[List[List[Any]]]) -> Optional[List[List[Any]]]:
        if value is None:
            return value
        for index, state in enumerate(value):
            if len(state) < 11:
                raise ValueError(f"state vector {index} has {len(state)} fields, expected at least 11")
        return value


class AdsbAircraftRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hex: Optional[str] = None
    flight: Optional[str] = None
    lat: Optional[Any] = None
    lon: Optional[Any] = None
    alt_baro: Optional[Union[float, str]] = None
    gs: Optional[float] = None
    track: Optional[float] = None


class AdsbPointPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ac: List[AdsbAircraftRecord]


def unwrap_relay_payload(payload: Any) -> Any:
    """Strip the envelope some relay proxies put around the upstream body.

    ``{"contents": "<json text>"}`` and ``{"contents": {...}}`` are both
    unwrapped; anything else is returned unchanged.
    """
    if isinstance(payload, dict) and "contents" in payload:
        contents = payload["contents"]
        if isinstance(contents, (str, bytes)):
            return json.loads(contents)
        return contents
    return payload
