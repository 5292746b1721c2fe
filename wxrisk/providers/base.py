from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

RETRY_AFTER_HEADERS = ("X-Rate-Limit-Retry-After-Seconds", "Retry-After")


class ProviderError(RuntimeError):
    """Base provider error."""


class UpstreamUnavailable(ProviderError):
    """Timeout, connection failure or a non-2xx answer from an upstream."""


class NotFound(ProviderError):
    """The upstream has no data for the requested station or identifier."""


class SchemaViolation(ProviderError):
    """The upstream payload does not have the expected structure."""


class FlightDataUnavailable(ProviderError):
    """Every step of the flight acquisition chain failed."""


class RateLimited(ProviderError):
    """Raised when a provider reports a rate limit; carries the retry window."""

    def __init__(
        self,
        message: str = "rate limit exceeded",
        *,
        retry_after_seconds: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
        self.provider = provider


@dataclass
class RequestConfig:
    timeout: float = 10.0
    retries: int = 2
    backoff_factor: float = 0.3
    status_forcelist: Iterable[int] = (500, 502, 503, 504)


class HTTPProvider:
    """Base class that adds retry/timeouts and error mapping for HTTP providers."""

    name = "http"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self._log = logging.getLogger(self.__class__.__name__)

    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        # only 5xx answers are retried; a timeout or refused connection fails at once
        retry = Retry(
            total=None,
            connect=0,
            read=0,
            status=config.retries,
            backoff_factor=config.backoff_factor,
            status_forcelist=tuple(config.status_forcelist),
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
            # 429 must surface as RateLimited, never sleep inside the adapter
            respect_retry_after_header=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            retry_after = parse_retry_after(response)
            self._log.warning("Rate limited by %s (retry after %s s)", self.name, retry_after)
            raise RateLimited(retry_after_seconds=retry_after, provider=self.name)
        if response.status_code in (400, 404):
            self._log.info("%s has no data (HTTP %s)", self.name, response.status_code)
            raise NotFound(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            self._log.error("%s returned %s: %s", self.name, response.status_code, response.text[:200])
            raise UpstreamUnavailable(f"HTTP {response.status_code}")
        return response

    def _request(self, method: str, url: str, *, timeout: Optional[float] = None, **kwargs) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=timeout if timeout is not None else self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.warning("Request to %s timed out", self.name)
            raise UpstreamUnavailable("timeout") from exc
        except requests.RequestException as exc:
            self._log.warning("Request to %s failed: %s", self.name, exc)
            raise UpstreamUnavailable("request failed") from exc
        return self._handle_response(response)

    def _json(self, response: Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON from %s: %s", self.name, response.text[:200])
            raise SchemaViolation("invalid json") from exc


def parse_retry_after(response: Response) -> Optional[int]:
    for header in RETRY_AFTER_HEADERS:
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return int(float(value))
        except (TypeError, ValueError):
            continue
    return None


__all__ = [
    "FlightDataUnavailable",
    "HTTPProvider",
    "NotFound",
    "ProviderError",
    "RateLimited",
    "RequestConfig",
    "SchemaViolation",
    "UpstreamUnavailable",
    "parse_retry_after",
]
