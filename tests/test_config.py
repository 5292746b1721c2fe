from __future__ import annotations

import logging

from wxrisk.config import load_capabilities, validate_configuration


def test_full_environment_enables_everything(caplog):
    environ = {
        "OPENSKY_CLIENT_ID": "user",
        "OPENSKY_CLIENT_SECRET": "secret",
        "REDIS_URL": "redis://localhost:6379/0",
        "GEMINI_API_KEY": "key",
    }

    with caplog.at_level(logging.WARNING):
        capabilities = validate_configuration(environ)

    assert capabilities.has_live_credentials
    assert capabilities.has_distributed_cache
    assert capabilities.has_ai_key
    assert capabilities.opensky_credentials == ("user", "secret")
    assert caplog.records == []


def test_each_missing_capability_logs_one_warning(caplog):
    with caplog.at_level(logging.WARNING):
        capabilities = validate_configuration({})

    assert capabilities.opensky_credentials is None
    assert len(caplog.records) == 3
    assert any("REDIS_URL" in record.getMessage() for record in caplog.records)


def test_half_configured_credentials_are_ignored():
    capabilities = load_capabilities({"OPENSKY_CLIENT_ID": "user"})

    assert not capabilities.has_live_credentials
    assert capabilities.opensky_credentials is None


def test_credentials_are_not_in_repr():
    capabilities = load_capabilities({"OPENSKY_CLIENT_ID": "user", "OPENSKY_CLIENT_SECRET": "hunter2"})

    assert "hunter2" not in repr(capabilities)
    assert capabilities.as_dict() == {
        "hasLiveCredentials": True,
        "hasDistributedCache": False,
        "hasAIKey": False,
    }
