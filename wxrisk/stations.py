"""Station directory and live-identifier resolution."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .cache import CacheBackend, TTLCache
from .entities import Station

STATIONS_TTL = 24 * 60 * 60
STATIONS_CACHE_KEY = "stations:all"

# explicit station id -> ICAO overrides
STATION_TO_ICAO: Dict[str, str] = {}

AIRPORT_NAME_KEYWORDS: Dict[str, str] = {
    "newark": "KEWR",
    "jfk": "KJFK",
    "laguardia": "KLGA",
    "lax": "KLAX",
    "ord": "KORD",
    "dfw": "KDFW",
    "atlanta": "KATL",
    "miami": "KMIA",
    "chicago": "KORD",
    "denver": "KDEN",
    "phoenix": "KPHX",
}

_CODE_RE = re.compile(r"^[A-Z]{3,4}$")
_ICAO_IN_NAME_RE = re.compile(r"\b([A-Z]{4})\b")


def resolve_live_identifier(station_id: str, station_info: Optional[Any] = None) -> Optional[str]:
    """Map a station id to the ICAO-style code used by the live METAR feed.

    ``station_info`` may be a :class:`Station` or a mapping with a ``name``.
    Three-letter ids get the US ``K`` prefix.  Returns ``None`` when nothing
    plausible is found.
    """
    if station_id in STATION_TO_ICAO:
        return STATION_TO_ICAO[station_id]
    if station_id and _CODE_RE.match(station_id):
        return f"K{station_id}" if len(station_id) == 3 else station_id

    name = _station_name(station_info)
    if not name:
        return None
    match = _ICAO_IN_NAME_RE.search(name)
    if match:
        return match.group(1)
    lowered = name.lower()
    for keyword, icao in AIRPORT_NAME_KEYWORDS.items():
        if keyword in lowered:
            return icao
    return None


def _station_name(station_info: Optional[Any]) -> Optional[str]:
    if station_info is None:
        return None
    if isinstance(station_info, Mapping):
        return station_info.get("name")
    return getattr(station_info, "name", None)


class StationDirectory:
    """Cached view over the historical provider's station list."""

    def __init__(self, provider: Any, cache: Optional[CacheBackend] = None, ttl: int = STATIONS_TTL) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else TTLCache()
        self.ttl = ttl
        self._log = logging.getLogger(self.__class__.__name__)

    def stations(self) -> List[Station]:
        cached = self.cache.get(STATIONS_CACHE_KEY)
        if cached is not None:
            return [Station.from_dict(item) for item in cached]
        stations = self.provider.stations()
        self._log.info("Loaded %d stations", len(stations))
        self.cache.set(STATIONS_CACHE_KEY, [station.as_dict() for station in stations], self.ttl)
        return stations

    def find(self, station_id: str) -> Optional[Station]:
        for station in self.stations():
            if station.id == station_id:
                return station
        return None


__all__ = ["StationDirectory", "resolve_live_identifier"]
