from __future__ import annotations

import pytest

from wxrisk.cache import TTLCache


class TimeController:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> TimeController:
    return TimeController()


@pytest.fixture
def cache(clock: TimeController) -> TTLCache:
    return TTLCache(time_func=clock)
