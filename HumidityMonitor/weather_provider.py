"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List


@dataclass(frozen=True)
class CurrentReading:
    """Current conditions as reported by a provider (temperatures in Celsius)."""
    temperature_c: float
    apparent_temperature_c: float
    dew_point_c: float
    relative_humidity_fraction: float  # 0..1


@dataclass(frozen=True)
class HourlyReading:
    timestamp: datetime
    relative_humidity_fraction: float  # 0..1


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @abstractmethod
    def get_current(self, latitude: float, longitude: float) -> CurrentReading:
        """
        Fetch current conditions for a coordinate.

        Returns:
            CurrentReading: Current weather information

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """
        pass

    @abstractmethod
    def get_hourly(
        self,
        latitude: float,
        longitude: float,
        start: datetime,
        end: datetime,
    ) -> List[HourlyReading]:
        """
        Fetch the hourly humidity forecast for ``start <= timestamp < end``.

        Returns:
            Chronological list of hourly readings

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """
        pass


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""
    pass


class RateLimitedError(WeatherProviderError):
    """Provider refused the request because of its own rate limit."""

    def __init__(self, message: str, retry_after_seconds: float):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
