"""Shared fixtures for the humidity monitor tests."""
from datetime import datetime, timezone

import pytest

from shared_store import SharedStore
from weather_data import Location
from weather_provider import CurrentReading, HourlyReading, WeatherProviderBase

# 2025-06-01 09:15:00 UTC
START_EPOCH = datetime(2025, 6, 1, 9, 15, tzinfo=timezone.utc).timestamp()


class FakeProvider(WeatherProviderBase):
    """Weather provider returning canned data and recording calls."""

    def __init__(self, current=None, hourly=None):
        self.current = current or CurrentReading(
            temperature_c=22.5,
            apparent_temperature_c=23.1,
            dew_point_c=15.6,
            relative_humidity_fraction=0.65,
        )
        self.hourly = hourly if hourly is not None else []
        self.current_error = None
        self.hourly_error = None
        self.calls = []
        self.on_hourly = None

    def get_current(self, latitude, longitude):
        self.calls.append(("current", latitude, longitude))
        if self.current_error:
            raise self.current_error
        return self.current

    def get_hourly(self, latitude, longitude, start, end):
        self.calls.append(("hourly", start, end))
        if self.on_hourly:
            self.on_hourly()
        if self.hourly_error:
            raise self.hourly_error
        return list(self.hourly)


class Clock:
    """Controllable epoch clock."""

    def __init__(self, now: float = START_EPOCH):
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def hourly_readings(pairs, day=datetime(2025, 6, 1, tzinfo=timezone.utc)):
    """Build hourly readings from (hour, humidity percent) pairs."""
    return [
        HourlyReading(day.replace(hour=hour), humidity / 100.0)
        for hour, humidity in pairs
    ]


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(tmp_path):
    """Shared store backed by a temporary SQLite file."""
    return SharedStore(str(tmp_path / "shared.db"), namespace="test.group")


@pytest.fixture
def provider():
    return FakeProvider(hourly=hourly_readings([(6, 20.0), (9, 55.0), (10, 50.0), (14, 62.0), (21, 30.0)]))


@pytest.fixture
def location():
    return Location(name="Lisbon", subtitle="Portugal", latitude=38.72, longitude=-9.14)
