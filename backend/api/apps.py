from __future__ import annotations

from django.apps import AppConfig

from wxrisk.config import Capabilities, validate_configuration


class ApiConfig(AppConfig):
    name = "backend.api"
    label = "wxrisk_api"
    capabilities: Capabilities = Capabilities()

    def ready(self) -> None:
        type(self).capabilities = validate_configuration()
