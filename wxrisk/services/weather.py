from __future__ import annotations

import bisect
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..cache import CacheBackend, TTLCache
from ..entities import SourcePreference, UnifiedWeather, WeatherSample
from ..health import ProviderHealth
from ..providers.base import ProviderError, RateLimited, SchemaViolation
from ..stations import resolve_live_identifier

REAL_TIME_MINUTES = 30


@dataclass(frozen=True)
class LiveAttempt:
    sample: Optional[WeatherSample] = None
    attempted: bool = False
    unavailable: bool = False
    identifier: Optional[str] = None


def data_age_minutes(timestamp: Optional[datetime], now: datetime) -> Optional[int]:
    if timestamp is None:
        return None
    minutes = round((now - timestamp).total_seconds() / 60)
    return max(0, minutes)


def fold_into_series(series: Sequence[WeatherSample], sample: WeatherSample) -> Tuple[WeatherSample, ...]:
    """Insert ``sample`` in timestamp order; an entry at the same instant is fused, not duplicated."""
    points = list(series)
    timestamps = [point.timestamp for point in points]
    index = bisect.bisect_left(timestamps, sample.timestamp)
    if index < len(points) and points[index].timestamp == sample.timestamp:
        points[index] = sample.merged_with(points[index])
    else:
        points.insert(index, sample)
    return tuple(points)


class WeatherFusionService:
    """Reconcile the live METAR feed with the historical archive for one station.

    Nothing is kept between requests except raw provider results in the cache.
    """

    LIVE_TTL = 2 * 60
    HISTORICAL_TTL = 5 * 60

    def __init__(
        self,
        *,
        live_provider: Any,
        historical_provider: Any,
        cache: Optional[CacheBackend] = None,
        identifier_resolver: Callable[[str, Any], Optional[str]] = resolve_live_identifier,
        now_func: Optional[Callable[[], datetime]] = None,
        health: Optional[ProviderHealth] = None,
        concurrent: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.live = live_provider
        self.historical = historical_provider
        self.cache = cache if cache is not None else TTLCache()
        self.resolve_identifier = identifier_resolver
        self._now = now_func or (lambda: datetime.now(timezone.utc))
        self.health = health
        self.concurrent = concurrent
        self._log = logger or logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def get_unified_weather(
        self,
        station_id: str,
        station_info: Optional[Any] = None,
        source_preference: SourcePreference = SourcePreference.HYBRID,
    ) -> Optional[UnifiedWeather]:
        """Return the fused view of a station, or ``None`` when neither source has data.

        Raises :class:`SchemaViolation` or :class:`RateLimited` from the
        historical archive; live-feed failures only mark the live attempt as
        unavailable.
        """
        preference = SourcePreference.parse(source_preference)
        want_live = preference in (SourcePreference.LIVE, SourcePreference.HYBRID)
        want_historical = preference in (SourcePreference.HISTORICAL, SourcePreference.HYBRID)

        live, series = self._gather(station_id, station_info, want_live, want_historical)
        now = self._now()

        if preference is SourcePreference.LIVE:
            return self._live_only(station_id, live, now)
        if preference is SourcePreference.HISTORICAL:
            return self._historical_only(station_id, series, now)
        return self._fuse(station_id, live, series, now)

    # Fetching -----------------------------------------------------------
    def _gather(
        self, station_id: str, station_info: Any, want_live: bool, want_historical: bool
    ) -> Tuple[LiveAttempt, List[WeatherSample]]:
        if want_live and want_historical and self.concurrent:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="wxrisk-fusion") as pool:
                live_future = pool.submit(self._fetch_live, station_id, station_info)
                historical_future = pool.submit(self._fetch_historical, station_id)
                live = live_future.result()
                series = historical_future.result()
            return live, series
        live = self._fetch_live(station_id, station_info) if want_live else LiveAttempt()
        series = self._fetch_historical(station_id) if want_historical else []
        return live, series

    def _fetch_live(self, station_id: str, station_info: Any) -> LiveAttempt:
        identifier = self.resolve_identifier(station_id, station_info)
        try:
            if identifier:
                self._log.info("Attempting METAR fetch for station %s using %s", station_id, identifier)
                sample = self._cached_sample(f"metar:{identifier}", lambda: self.live.latest(identifier))
            else:
                self._log.info("Station %s has no ICAO identifier, trying coordinate lookup", station_id)
                coords = _coordinates(station_info)
                if coords is None:
                    return LiveAttempt(attempted=True, unavailable=True)
                lat, lng = coords
                sample = self._cached_sample(
                    f"metar:coords:{lat:.2f}:{lng:.2f}", lambda: self.live.nearest(lat, lng)
                )
        except ProviderError as exc:
            self._log.warning("METAR fetch failed for %s: %s", station_id, exc)
            self._record_failure("live", exc)
            return LiveAttempt(attempted=True, unavailable=True, identifier=identifier)

        if sample is None:
            self._log.info("METAR data not available for %s", identifier or station_id)
        else:
            self._record_success("live")
        return LiveAttempt(sample=sample, attempted=True, unavailable=sample is None, identifier=identifier)

    def _cached_sample(self, key: str, loader: Callable[[], Optional[WeatherSample]]) -> Optional[WeatherSample]:
        cached = self.cache.get(key)
        if cached is not None:
            return WeatherSample.from_dict(cached)
        sample = loader()
        if sample is not None:
            self.cache.set(key, sample.as_dict(), self.LIVE_TTL)
        return sample

    def _fetch_historical(self, station_id: str) -> List[WeatherSample]:
        key = f"historical:{station_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return [WeatherSample.from_dict(item) for item in cached]
        try:
            series = self.historical.historical_weather(station_id)
        except (SchemaViolation, RateLimited) as exc:
            self._record_failure("historical", exc)
            raise
        except ProviderError as exc:
            self._log.warning("Historical fetch failed for %s: %s", station_id, exc)
            self._record_failure("historical", exc)
            return []
        self._record_success("historical")
        self.cache.set(key, [sample.as_dict() for sample in series], self.HISTORICAL_TTL)
        return series

    # Selection ----------------------------------------------------------
    def _fuse(self, station_id: str, live: LiveAttempt, series: List[WeatherSample], now: datetime) -> Optional[UnifiedWeather]:
        latest = series[-1] if series else None
        live_age = data_age_minutes(live.sample.timestamp, now) if live.sample else None
        historical_age = data_age_minutes(latest.timestamp, now) if latest else None
        points: Tuple[WeatherSample, ...] = tuple(series)

        if live.sample is not None and live_age < REAL_TIME_MINUTES:
            current, age, real_time = live.sample, live_age, True
            label = SourcePreference.HYBRID.value if series else SourcePreference.LIVE.value
            points = fold_into_series(series, live.sample)
        elif latest is not None and historical_age < REAL_TIME_MINUTES:
            current, age, real_time = latest, historical_age, True
            label = SourcePreference.HISTORICAL.value
        elif live.sample is not None:
            current, age, real_time = live.sample, live_age, False
            label = SourcePreference.LIVE.value
        elif latest is not None:
            current, age, real_time = latest, historical_age, False
            label = SourcePreference.HISTORICAL.value
        else:
            self._log.info("No weather data for station %s", station_id)
            return None

        return UnifiedWeather(
            station_id=station_id,
            points=points,
            current=current,
            data_age_minutes=age,
            is_real_time=real_time,
            source_label=label,
            live_attempted=live.attempted,
            live_unavailable=live.unavailable,
            live_identifier=live.identifier,
        )

    def _live_only(self, station_id: str, live: LiveAttempt, now: datetime) -> Optional[UnifiedWeather]:
        if live.sample is None:
            return None
        age = data_age_minutes(live.sample.timestamp, now)
        return UnifiedWeather(
            station_id=station_id,
            points=(live.sample,),
            current=live.sample,
            data_age_minutes=age,
            is_real_time=age < REAL_TIME_MINUTES,
            source_label=SourcePreference.LIVE.value,
            live_attempted=live.attempted,
            live_unavailable=live.unavailable,
            live_identifier=live.identifier,
        )

    def _historical_only(self, station_id: str, series: List[WeatherSample], now: datetime) -> Optional[UnifiedWeather]:
        if not series:
            return None
        latest = series[-1]
        age = data_age_minutes(latest.timestamp, now)
        return UnifiedWeather(
            station_id=station_id,
            points=tuple(series),
            current=latest,
            data_age_minutes=age,
            is_real_time=age < REAL_TIME_MINUTES,
            source_label=SourcePreference.HISTORICAL.value,
        )

    # Helpers ------------------------------------------------------------
    def _record_failure(self, provider: str, exc: Exception) -> None:
        if self.health is not None:
            self.health.record_failure(provider, str(exc))

    def _record_success(self, provider: str) -> None:
        if self.health is not None:
            self.health.record_success(provider)


def _coordinates(station_info: Any) -> Optional[Tuple[float, float]]:
    if station_info is None:
        return None
    if isinstance(station_info, dict):
        lat, lng = station_info.get("lat"), station_info.get("lng")
    else:
        lat, lng = getattr(station_info, "latitude", None), getattr(station_info, "longitude", None)
    if lat is None or lng is None:
        return None
    return float(lat), float(lng)


__all__ = ["LiveAttempt", "WeatherFusionService", "data_age_minutes", "fold_into_series"]
