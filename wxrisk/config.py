"""Process-start configuration validation.

The engine never reads the environment at call sites.  ``validate_configuration``
runs once when the process starts, logs one warning per degraded capability and
returns a :class:`Capabilities` struct that is passed to the services.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    has_live_credentials: bool = False
    has_distributed_cache: bool = False
    has_ai_key: bool = False
    opensky_username: Optional[str] = field(default=None, repr=False)
    opensky_password: Optional[str] = field(default=None, repr=False)

    @property
    def opensky_credentials(self) -> Optional[Tuple[str, str]]:
        if not self.has_live_credentials:
            return None
        return self.opensky_username, self.opensky_password

    def as_dict(self) -> dict:
        return {
            "hasLiveCredentials": self.has_live_credentials,
            "hasDistributedCache": self.has_distributed_cache,
            "hasAIKey": self.has_ai_key,
        }


def load_capabilities(environ: Optional[Mapping[str, str]] = None) -> Capabilities:
    environ = os.environ if environ is None else environ
    username = environ.get("OPENSKY_CLIENT_ID") or None
    password = environ.get("OPENSKY_CLIENT_SECRET") or None
    return Capabilities(
        has_live_credentials=bool(username and password),
        has_distributed_cache=bool(environ.get("REDIS_URL")),
        has_ai_key=bool(environ.get("GEMINI_API_KEY")),
        opensky_username=username,
        opensky_password=password,
    )


def validate_configuration(
    environ: Optional[Mapping[str, str]] = None,
    log: Optional[logging.Logger] = None,
) -> Capabilities:
    log = log or logger
    capabilities = load_capabilities(environ)
    if not capabilities.has_distributed_cache:
        log.warning("REDIS_URL is not set; using an in-memory cache (not shared between processes)")
    if not capabilities.has_live_credentials:
        log.warning("OPENSKY_CLIENT_ID/OPENSKY_CLIENT_SECRET not set; OpenSky will use anonymous access")
    if not capabilities.has_ai_key:
        log.warning("GEMINI_API_KEY is not set; AI summaries are unavailable")
    return capabilities


__all__ = ["Capabilities", "load_capabilities", "validate_configuration"]
