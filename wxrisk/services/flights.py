from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..cache import CacheBackend, TTLCache
from ..config import Capabilities
from ..entities import FlightQuery, FlightState
from ..geo import distance_km
from ..health import ProviderHealth
from ..providers.adsb import AdsbLolProvider
from ..providers.base import FlightDataUnavailable, ProviderError, RateLimited
from ..providers.opensky import (
    DEFAULT_RELAYS,
    OpenSkyCredentialURLSource,
    OpenSkyDirectSource,
    OpenSkyProvider,
    RelayProxy,
    RelayProxySource,
)

NEARBY_RADIUS_KM = 50.0
ALTITUDE_CEILING_M = 5000.0


class FlightSource(Protocol):
    name: str
    propagates_rate_limit: bool

    def fetch(self, query: FlightQuery) -> List[FlightState]:
        ...


def build_flight_sources(
    capabilities: Optional[Capabilities] = None,
    *,
    opensky: Optional[OpenSkyProvider] = None,
    secondary: Optional[AdsbLolProvider] = None,
    relays: Iterable[RelayProxy] = DEFAULT_RELAYS,
) -> List[FlightSource]:
    """Default chain: direct, credential URL (only with credentials), relays, adsb.lol."""
    capabilities = capabilities or Capabilities()
    opensky = opensky or OpenSkyProvider()
    credentials = capabilities.opensky_credentials
    sources: List[FlightSource] = [OpenSkyDirectSource(opensky, credentials)]
    if credentials is not None:
        sources.append(OpenSkyCredentialURLSource(opensky, credentials))
    sources.extend(RelayProxySource(opensky, relay) for relay in relays)
    sources.append(secondary or AdsbLolProvider())
    return sources


def normalize_flights(
    flights: Iterable[FlightState],
    latitude: float,
    longitude: float,
    radius_km: float = NEARBY_RADIUS_KM,
    ceiling_m: float = ALTITUDE_CEILING_M,
) -> List[FlightState]:
    """Annotate distance to the point, drop far or high aircraft, nearest first."""
    nearby = []
    for flight in flights:
        if flight.altitude_m is None or flight.altitude_m >= ceiling_m:
            continue
        distance = distance_km(flight.latitude_deg, flight.longitude_deg, latitude, longitude)
        if distance > radius_km:
            continue
        nearby.append(flight.with_distance(distance))
    return sorted(nearby, key=lambda flight: flight.distance_to_station_km)


class FlightAcquisitionService:
    """Live aircraft near a point, tried across an ordered chain of sources.

    The first source that returns a structurally valid payload wins.  Timeouts,
    HTTP errors and schema failures advance to the next source.  A rate limit
    from a source flagged ``propagates_rate_limit`` stops the chain and is
    raised as :class:`RateLimited`.
    """

    FLIGHTS_TTL = 15

    def __init__(
        self,
        sources: Sequence[FlightSource],
        *,
        cache: Optional[CacheBackend] = None,
        deadline_seconds: Optional[float] = None,
        time_func: Callable[[], float] = time.monotonic,
        health: Optional[ProviderHealth] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not sources:
            raise ValueError("at least one flight source is required")
        self.sources = list(sources)
        self.cache = cache if cache is not None else TTLCache()
        self.deadline_seconds = deadline_seconds
        self._time_func = time_func
        self.health = health
        self._log = logger or logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def get_nearby_flights(self, latitude: float, longitude: float) -> List[FlightState]:
        cache_key = self._cache_key(latitude, longitude)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return [FlightState.from_dict(item) for item in cached]

        query = FlightQuery(latitude=latitude, longitude=longitude)
        source_name, raw = self._fetch_with_fallback(query)
        flights = normalize_flights(raw, latitude, longitude)
        self._log.info(
            "%s returned %d aircraft, %d within %.0f km below %.0f m",
            source_name, len(raw), len(flights), NEARBY_RADIUS_KM, ALTITUDE_CEILING_M,
        )
        self.cache.set(cache_key, [flight.as_dict() for flight in flights], self.FLIGHTS_TTL)
        return flights

    # Helpers ------------------------------------------------------------
    def _fetch_with_fallback(self, query: FlightQuery) -> Tuple[str, List[FlightState]]:
        started = self._time_func()
        errors: List[Exception] = []
        for source in self.sources:
            if self.deadline_seconds is not None and self._time_func() - started >= self.deadline_seconds:
                self._log.warning("Flight request deadline of %.0f s reached before %s", self.deadline_seconds, source.name)
                break
            try:
                flights = source.fetch(query)
            except RateLimited as exc:
                self._record_failure(source.name, exc)
                if getattr(source, "propagates_rate_limit", False):
                    self._log.warning("%s rate limited; retry after %s s", source.name, exc.retry_after_seconds)
                    raise
                self._log.warning("%s rate limited, trying next source", source.name)
                errors.append(exc)
                continue
            except ProviderError as exc:
                self._log.warning("Flight source %s failed: %s", source.name, exc)
                self._record_failure(source.name, exc)
                errors.append(exc)
                continue
            if self.health is not None:
                self.health.record_success(source.name)
            return source.name, flights
        raise FlightDataUnavailable("all flight sources failed") from (errors[-1] if errors else None)

    def _record_failure(self, name: str, exc: Exception) -> None:
        if self.health is not None:
            self.health.record_failure(name, str(exc) or exc.__class__.__name__)

    @staticmethod
    def _cache_key(latitude: float, longitude: float) -> str:
        return f"flights:{latitude:.3f}:{longitude:.3f}"


__all__ = [
    "ALTITUDE_CEILING_M",
    "FlightAcquisitionService",
    "FlightDataUnavailable",
    "FlightSource",
    "NEARBY_RADIUS_KM",
    "build_flight_sources",
    "normalize_flights",
]
