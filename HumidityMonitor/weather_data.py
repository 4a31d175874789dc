"""Humidity domain model - pure data structures independent of any API or store."""
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import List, Optional

from config import DEFAULT_HOME_END, DEFAULT_HOME_START


class TemperatureUnit(str, Enum):
    """Display unit preference. Values are the persisted strings."""
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"

    @property
    def symbol(self) -> str:
        return "°C" if self is TemperatureUnit.CELSIUS else "°F"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TemperatureUnit":
        """Decode a persisted unit; anything unrecognised means Celsius."""
        return cls.FAHRENHEIT if value == cls.FAHRENHEIT.value else cls.CELSIUS


@dataclass(frozen=True)
class Location:
    """A place picked by the user. Replaced wholesale, never edited."""
    name: str
    subtitle: str
    latitude: float
    longitude: float

    def describe(self) -> str:
        return f"{self.name} @ {self.latitude},{self.longitude}"


@dataclass(frozen=True)
class HomeHoursWindow:
    """Recurring daily interval when the user is home (hour and minute only)."""
    start: time = DEFAULT_HOME_START
    end: time = DEFAULT_HOME_END


@dataclass(frozen=True)
class HourlyHumidityPoint:
    timestamp: datetime
    relative_humidity: float  # percentage, 0-100


@dataclass(frozen=True)
class OptimalWindow:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class CurrentConditions:
    """Current reading, always in Celsius. Surfaces convert for display."""
    temperature_c: float
    apparent_temperature_c: float
    dew_point_c: float
    relative_humidity: float  # percentage, 0-100
    absolute_humidity: float  # g/m³


@dataclass
class WeatherSnapshot:
    """Result of one successful fetch cycle."""
    current: CurrentConditions
    hourly: List[HourlyHumidityPoint] = field(default_factory=list)
    optimal_window: Optional[OptimalWindow] = None
    predicted_humidity: Optional[float] = None
    fetched_at: Optional[datetime] = None
    version: int = 0
