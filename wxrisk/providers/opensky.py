"""OpenSky Network ``states/all`` access and the chain steps built on it."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from .base import HTTPProvider, RateLimited, RequestConfig, SchemaViolation, UpstreamUnavailable
from ..entities import FlightQuery, FlightState
from ..schemas import OpenSkyStatesPayload, ValidationError, unwrap_relay_payload

# state vector positions
ICAO24, CALLSIGN, LONGITUDE, LATITUDE, BARO_ALTITUDE, ON_GROUND, VELOCITY, TRUE_TRACK = 0, 1, 5, 6, 7, 8, 9, 10
GEO_ALTITUDE = 13

DIRECT_TIMEOUT = 5.0
RELAY_TIMEOUT = 8.0


@dataclass(frozen=True)
class RelayProxy:
    """A public relay that fetches ``{url}`` on our behalf."""

    name: str
    template: str
    timeout: float = RELAY_TIMEOUT

    def wrap(self, target_url: str) -> str:
        return self.template.format(url=quote(target_url, safe=""))


DEFAULT_RELAYS: Tuple[RelayProxy, ...] = (
    RelayProxy("allorigins", "https://api.allorigins.win/get?url={url}"),
    RelayProxy("corsproxy", "https://corsproxy.io/?url={url}"),
    RelayProxy("codetabs", "https://api.codetabs.com/v1/proxy/?quest={url}"),
)


class OpenSkyProvider(HTTPProvider):
    name = "opensky"
    base_url = "https://opensky-network.org/api/states/all"

    def __init__(self, base_url: Optional[str] = None, **kwargs) -> None:
        kwargs.setdefault("request_config", RequestConfig(timeout=DIRECT_TIMEOUT, retries=0))
        super().__init__(**kwargs)
        self.base_url = base_url or self.base_url
        self._log = logging.getLogger(self.__class__.__name__)

    def states(
        self,
        query: FlightQuery,
        *,
        auth: Optional[Tuple[str, str]] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[FlightState]:
        response = self._request(
            "GET",
            url or self.base_url,
            params=query.bounding_box,
            auth=auth,
            timeout=timeout,
        )
        return self.parse_states(self._json(response))

    def states_via_relay(self, query: FlightQuery, relay: RelayProxy) -> List[FlightState]:
        target = f"{self.base_url}?{urlencode(query.bounding_box)}"
        response = self._request("GET", relay.wrap(target), timeout=relay.timeout)
        try:
            payload = unwrap_relay_payload(self._json(response))
        except ValueError as exc:
            raise SchemaViolation(f"{relay.name} returned undecodable contents") from exc
        return self.parse_states(payload)

    def parse_states(self, payload: Any) -> List[FlightState]:
        try:
            parsed = OpenSkyStatesPayload.model_validate(payload)
        except ValidationError as exc:
            self._log.error("OpenSky payload failed validation: %s", exc)
            raise SchemaViolation("invalid OpenSky states payload") from exc
        flights = []
        for state in parsed.states or []:
            flight = FlightState.build(
                callsign=state[CALLSIGN],
                latitude=state[LATITUDE],
                longitude=state[LONGITUDE],
                altitude_m=self._altitude(state),
                ground_speed_mps=state[VELOCITY],
                track_deg=state[TRUE_TRACK],
                icao24=state[ICAO24],
            )
            if flight is not None:
                flights.append(flight)
        self._log.debug("OpenSky returned %d states, %d usable", len(parsed.states or []), len(flights))
        return flights

    @staticmethod
    def _altitude(state: Sequence[Any]) -> Any:
        altitude = state[BARO_ALTITUDE]
        if altitude is None and len(state) > GEO_ALTITUDE:
            altitude = state[GEO_ALTITUDE]
        if altitude is None and state[ON_GROUND] is True:
            altitude = 0.0
        return altitude


def credential_url(base_url: str, credentials: Tuple[str, str]) -> str:
    username, password = credentials
    parts = urlsplit(base_url)
    netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{parts.hostname}"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


# Chain steps ------------------------------------------------------------
class OpenSkyDirectSource:
    """Step 1: direct call, Basic auth header when credentials exist."""

    propagates_rate_limit = True

    def __init__(self, provider: OpenSkyProvider, credentials: Optional[Tuple[str, str]] = None,
                 timeout: float = DIRECT_TIMEOUT) -> None:
        self.provider = provider
        self.credentials = credentials
        self.timeout = timeout
        self.name = "opensky-direct"

    def fetch(self, query: FlightQuery) -> List[FlightState]:
        return self.provider.states(query, auth=self.credentials, timeout=self.timeout)


class OpenSkyCredentialURLSource:
    """Step 2: same endpoint with the credentials embedded in the URL."""

    propagates_rate_limit = True

    def __init__(self, provider: OpenSkyProvider, credentials: Tuple[str, str],
                 timeout: float = DIRECT_TIMEOUT) -> None:
        self.provider = provider
        self.credentials = credentials
        self.timeout = timeout
        self.name = "opensky-credential-url"

    def fetch(self, query: FlightQuery) -> List[FlightState]:
        url = credential_url(self.provider.base_url, self.credentials)
        return self.provider.states(query, url=url, timeout=self.timeout)


class RelayProxySource:
    """Step 3: anonymous query relayed through a public proxy."""

    propagates_rate_limit = False

    def __init__(self, provider: OpenSkyProvider, relay: RelayProxy) -> None:
        self.provider = provider
        self.relay = relay
        self.name = f"relay-{relay.name}"

    def fetch(self, query: FlightQuery) -> List[FlightState]:
        try:
            return self.provider.states_via_relay(query, self.relay)
        except RateLimited as exc:
            raise UpstreamUnavailable(f"{self.relay.name} rate limited") from exc


__all__ = [
    "DEFAULT_RELAYS",
    "OpenSkyCredentialURLSource",
    "OpenSkyDirectSource",
    "OpenSkyProvider",
    "RelayProxy",
    "RelayProxySource",
    "credential_url",
]
