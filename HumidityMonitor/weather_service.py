"""Weather service: fetch, derive, and persist humidity snapshots."""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from config import FORECAST_HORIZON_HOURS
from cooldown_gate import RefreshCooldownGate
from errors import RateLimited, UpstreamError
from humidity_math import absolute_humidity
from optimal_window import predicted_humidity, select_optimal_window
from shared_store import SharedStore
from weather_data import (
    CurrentConditions,
    HomeHoursWindow,
    HourlyHumidityPoint,
    Location,
    TemperatureUnit,
    WeatherSnapshot,
)
from weather_provider import RateLimitedError, WeatherProviderBase, WeatherProviderError


class WeatherService:
    """
    The one engine every surface refreshes through.

    A refresh asks the provider for current conditions and the hourly
    forecast, derives absolute humidity and the optimal ventilation window,
    and writes the whole snapshot to the shared store in one transaction.
    Nothing is written unless both provider calls succeed, and the service
    never retries: the triggering surface decides when to try again.
    """

    def __init__(
        self,
        provider: WeatherProviderBase,
        store: SharedStore,
        gate: Optional[RefreshCooldownGate] = None,
        horizon_hours: int = FORECAST_HORIZON_HOURS,
        time_func: Callable[[], float] = time.time,
    ):
        """
        Initialize weather service.

        Args:
            provider: Weather provider to use
            store: Shared store the snapshot is persisted to
            gate: Cooldown gate (defaults to one reading the same store and clock)
            horizon_hours: Length of the hourly forecast requested, from the top of the current hour
            time_func: Clock returning epoch seconds
        """
        self.provider = provider
        self.store = store
        self.time_func = time_func
        self.gate = gate or RefreshCooldownGate(store, time_func=time_func)
        self.horizon_hours = horizon_hours

    def refresh(self, location: Location, enforce_cooldown: bool = True) -> WeatherSnapshot:
        """
        Fetch fresh data for a location and persist it.

        Args:
            location: Where to fetch weather for
            enforce_cooldown: False for explicit user actions that may bypass the gate

        Returns:
            WeatherSnapshot: The snapshot that was persisted

        Raises:
            CooldownActive: If the cooldown is enforced and has not elapsed
            RateLimited: If the provider asked us to back off
            UpstreamError: If the provider failed for any other reason
        """
        self.gate.check(enforce_cooldown)

        now = datetime.fromtimestamp(self.time_func(), tz=timezone.utc)
        start = now.replace(minute=0, second=0, microsecond=0)
        end = start + timedelta(hours=self.horizon_hours)
        logging.info(f"Refreshing weather for {location.describe()} (enforce_cooldown={enforce_cooldown})")

        try:
            reading = self.provider.get_current(location.latitude, location.longitude)
            forecast = self.provider.get_hourly(location.latitude, location.longitude, start, end)
        except RateLimitedError as e:
            logging.info(f"Provider rate limit, retry after {e.retry_after_seconds:.0f}s")
            raise RateLimited(e.retry_after_seconds) from e
        except WeatherProviderError as e:
            logging.error(f"Weather fetch failed: {e}")
            raise UpstreamError(e) from e

        relative = reading.relative_humidity_fraction * 100
        current = CurrentConditions(
            temperature_c=reading.temperature_c,
            apparent_temperature_c=reading.apparent_temperature_c,
            dew_point_c=reading.dew_point_c,
            relative_humidity=relative,
            absolute_humidity=absolute_humidity(reading.temperature_c, relative),
        )
        hourly = [
            HourlyHumidityPoint(item.timestamp, item.relative_humidity_fraction * 100)
            for item in forecast
        ]

        # Read fresh so a settings change from another surface applies now.
        home = self.store.load_home_hours()
        window = select_optimal_window(hourly, home)
        snapshot = WeatherSnapshot(
            current=current,
            hourly=hourly,
            optimal_window=window,
            predicted_humidity=predicted_humidity(hourly, window),
            fetched_at=now,
        )
        self.store.save_snapshot(snapshot, refreshed_at=self.gate.record_refresh())

        logging.info(
            f"Weather refresh successful: RH {relative:.0f}%, "
            f"AH {current.absolute_humidity:.1f} g/m³, window "
            f"{window.start.isoformat() if window else 'none'}"
        )
        return snapshot

    # Consumer-facing accessors ---------------------------------------------
    def get_current_snapshot(self) -> Optional[WeatherSnapshot]:
        """Latest persisted snapshot from any surface; no network call."""
        return self.store.load_snapshot()

    def get_saved_location(self) -> Optional[Location]:
        return self.store.load_location()

    def save_location(self, location: Location) -> None:
        self.store.save_location(location)
        logging.info(f"Saved location: {location.describe()}")

    def get_unit(self) -> TemperatureUnit:
        return self.store.load_unit()

    def set_unit(self, unit: TemperatureUnit) -> None:
        self.store.save_unit(unit)

    def get_home_hours(self) -> HomeHoursWindow:
        return self.store.load_home_hours()

    def set_home_hours(self, home: HomeHoursWindow) -> None:
        """Takes effect on the next refresh; the stored window is not recomputed."""
        self.store.save_home_hours(home)

    def seconds_since_last_refresh(self) -> float:
        return self.gate.seconds_since_last_refresh()
