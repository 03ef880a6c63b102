"""Fixtures shared by unit and integration tests."""

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    # A Friday morning in Jakarta (UTC+7)
    return FakeClock(datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc))
