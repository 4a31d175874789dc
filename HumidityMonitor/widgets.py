"""Timeline providers for the two glanceable widgets."""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, List, Optional

from config import WIDGET_TIMELINE_MINUTES
from errors import CooldownActive, NoSavedLocation, RateLimited, UpstreamError
from humidity_math import from_celsius
from weather_data import HourlyHumidityPoint, OptimalWindow, TemperatureUnit, WeatherSnapshot
from weather_service import WeatherService


@dataclass
class HumidityEntry:
    """Current-conditions widget entry. Temperatures are in ``unit``."""
    date: datetime
    last_refresh: Optional[datetime]
    relative_humidity: Optional[float]
    absolute_humidity: Optional[float]
    dew_point: Optional[float]
    temperature: Optional[float]
    feels_like: Optional[float]
    unit: Optional[TemperatureUnit]


@dataclass
class VentilationEntry:
    """Optimal-window widget entry."""
    date: datetime
    last_refresh: Optional[datetime]
    optimal_window: Optional[OptimalWindow]
    predicted_humidity: Optional[float]
    hourly: List[HourlyHumidityPoint] = field(default_factory=list)
    relative_humidity: Optional[float] = None
    unit: Optional[TemperatureUnit] = None


@dataclass
class Timeline:
    entries: list
    next_update: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _location_tz(weather: Optional[WeatherSnapshot]) -> tzinfo:
    if weather is not None and weather.hourly and weather.hourly[0].timestamp.tzinfo is not None:
        return weather.hourly[0].timestamp.tzinfo
    return timezone.utc


class WidgetTimelineProvider(ABC):
    """
    Shared refresh path for both widgets.

    A widget tick is an automatic trigger: it only fetches when the shared
    snapshot is older than the widget's interval, always enforces the
    cooldown, and falls back to whatever another surface stored when it is
    refused. Overlapping ticks in the same process are collapsed.
    """

    def __init__(
        self,
        service: WeatherService,
        interval_minutes: int = WIDGET_TIMELINE_MINUTES,
        now_func: Callable[[], datetime] = _utcnow,
    ):
        self.service = service
        self.interval_minutes = interval_minutes
        self.now_func = now_func
        self._refresh_lock = threading.Lock()

    @abstractmethod
    def placeholder(self):
        """Sample entry shown before any data exists."""
        pass

    @abstractmethod
    def snapshot(self):
        """Entry for the current moment, refreshing if due."""
        pass

    def timeline(self) -> Timeline:
        entry = self.snapshot()
        next_update = self.now_func() + timedelta(minutes=self.interval_minutes)
        return Timeline(entries=[entry], next_update=next_update)

    def _last_refresh(self, weather: Optional[WeatherSnapshot] = None) -> Optional[datetime]:
        """Last refresh in the same UTC offset as the snapshot's forecast hours."""
        last = self.service.store.last_refresh()
        if last is None:
            return None
        return datetime.fromtimestamp(last, tz=_location_tz(weather))

    def _load_snapshot(self) -> Optional[WeatherSnapshot]:
        """
        Latest snapshot for the saved location, or None when the widget
        should show its error entry.
        """
        location = self.service.get_saved_location()
        if location is None:
            logging.warning("Widget: no saved location in shared store")
            return None

        stored = self.service.get_current_snapshot()
        if stored is not None and not self.service.gate.is_due(self.interval_minutes * 60):
            logging.debug("Widget: shared snapshot is fresh, not fetching")
            return stored

        if not self._refresh_lock.acquire(blocking=False):
            logging.debug("Widget: refresh already in flight, using stored snapshot")
            return stored
        try:
            return self.service.refresh(location, enforce_cooldown=True)
        except (CooldownActive, RateLimited) as e:
            logging.info(f"Widget: refresh skipped ({e}), using stored snapshot")
            return stored
        except UpstreamError as e:
            logging.error(f"Widget weather error: {e}")
            return stored
        finally:
            self._refresh_lock.release()


class HumidityWidgetProvider(WidgetTimelineProvider):
    """Current humidity, absolute humidity, dew point and temperatures."""

    def placeholder(self) -> HumidityEntry:
        now = self.now_func()
        return HumidityEntry(
            date=now,
            last_refresh=now,
            relative_humidity=65,
            absolute_humidity=12.3,
            dew_point=9.0,
            temperature=22.5,
            feels_like=24.0,
            unit=TemperatureUnit.CELSIUS,
        )

    def error_entry(self) -> HumidityEntry:
        return HumidityEntry(
            date=self.now_func(),
            last_refresh=self._last_refresh(),
            relative_humidity=None,
            absolute_humidity=None,
            dew_point=None,
            temperature=None,
            feels_like=None,
            unit=None,
        )

    def snapshot(self) -> HumidityEntry:
        weather = self._load_snapshot()
        if weather is None:
            return self.error_entry()
        unit = self.service.get_unit()
        current = weather.current
        return HumidityEntry(
            date=self.now_func(),
            last_refresh=self._last_refresh(weather),
            relative_humidity=current.relative_humidity,
            absolute_humidity=current.absolute_humidity,
            dew_point=from_celsius(current.dew_point_c, unit),
            temperature=from_celsius(current.temperature_c, unit),
            feels_like=from_celsius(current.apparent_temperature_c, unit),
            unit=unit,
        )


class VentilationWidgetProvider(WidgetTimelineProvider):
    """Optimal ventilation window and the hourly series behind it."""

    def placeholder(self) -> VentilationEntry:
        return self.error_entry()

    def error_entry(self) -> VentilationEntry:
        return VentilationEntry(
            date=self.now_func(),
            last_refresh=None,
            optimal_window=None,
            predicted_humidity=None,
        )

    def snapshot(self) -> VentilationEntry:
        weather = self._load_snapshot()
        if weather is None:
            return self.error_entry()
        return VentilationEntry(
            date=self.now_func(),
            last_refresh=self._last_refresh(weather),
            optimal_window=weather.optimal_window,
            predicted_humidity=weather.predicted_humidity,
            hourly=list(weather.hourly),
            relative_humidity=weather.current.relative_humidity,
            unit=self.service.get_unit(),
        )


class RefreshIntent:
    """
    The widget refresh button.

    Goes through the same engine as every other trigger. Unless
    ``force_refresh`` is set the cooldown applies and ``CooldownActive``
    propagates to the caller. Registered reload callbacks run after a
    successful refresh so every widget re-reads the shared snapshot.
    """

    def __init__(self, service: WeatherService, force_refresh: bool = False):
        self.service = service
        self.force_refresh = force_refresh
        self._reloads: List[Callable[[], None]] = []

    def on_reload(self, callback: Callable[[], None]) -> None:
        self._reloads.append(callback)

    def perform(self) -> WeatherSnapshot:
        """
        Raises:
            NoSavedLocation: If no location has been saved
            UpstreamError: If the provider fails
            CooldownActive: If not forced and the cooldown has not elapsed
            RateLimited: If the provider asked us to back off
        """
        location = self.service.get_saved_location()
        if location is None:
            raise NoSavedLocation()
        snapshot = self.service.refresh(location, enforce_cooldown=not self.force_refresh)
        for reload in self._reloads:
            reload()
        return snapshot
