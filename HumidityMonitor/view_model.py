"""Main application view model - state container for the main screen."""
import logging
import math
import queue
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from config import AUTO_REFRESH_INTERVAL_SECONDS, REFRESH_COOLDOWN_SECONDS
from errors import CooldownActive, InvalidInputError, RateLimited, UpstreamError
from indoor_comparison import (
    comparison_advice,
    indoor_absolute_humidity,
    parse_indoor_reading,
    sanitize_humidity_input,
    sanitize_temperature_input,
)
from layout import format_elapsed
from place_search import PlaceCompleter, PlaceSearchError, PlaceSuggestion
from weather_data import (
    CurrentConditions,
    HomeHoursWindow,
    HourlyHumidityPoint,
    Location,
    OptimalWindow,
    TemperatureUnit,
    WeatherSnapshot,
)
from weather_service import WeatherService

TOAST_SECONDS = 3


@dataclass
class ViewState:
    search_text: str = ""
    suggestions: List[PlaceSuggestion] = field(default_factory=list)
    selected_suggestion: Optional[PlaceSuggestion] = None
    location: Optional[Location] = None
    unit: TemperatureUnit = TemperatureUnit.CELSIUS
    home_hours: HomeHoursWindow = field(default_factory=HomeHoursWindow)
    current: Optional[CurrentConditions] = None
    hourly: List[HourlyHumidityPoint] = field(default_factory=list)
    optimal_window: Optional[OptimalWindow] = None
    predicted_humidity: Optional[float] = None
    is_loading: bool = False
    error_message: Optional[str] = None
    toast_message: Optional[str] = None
    toast_expires_at: Optional[float] = None
    last_refresh: Optional[float] = None
    indoor_temperature: str = ""
    indoor_humidity: str = ""


StateListener = Callable[[ViewState], None]


class WeatherViewModel:
    """
    Holds what the main screen shows and routes user actions to the engine.

    Listeners receive a copy of the state after every change. Refreshes from
    this surface never overlap: a trigger arriving while one is in flight is
    ignored.
    """

    def __init__(
        self,
        service: WeatherService,
        completer: PlaceCompleter,
        refresh_interval: float = AUTO_REFRESH_INTERVAL_SECONDS,
        time_func: Callable[[], float] = time.time,
    ):
        self.service = service
        self.completer = completer
        self.refresh_interval = refresh_interval
        self.time_func = time_func
        self.state = ViewState()
        self._listeners: List[StateListener] = []
        self._refresh_lock = threading.Lock()
        self._incoming = queue.SimpleQueue()
        completer.subscribe(self._on_suggestions)

    # -- observation ---------------------------------------------------------
    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _publish(self) -> None:
        snapshot = replace(self.state)
        for listener in list(self._listeners):
            listener(snapshot)

    # -- lifecycle -----------------------------------------------------------
    def start(self) -> None:
        """
        Load preferences and the stored snapshot, then refresh the saved
        location. Startup is an automatic trigger, so the cooldown applies;
        when refused, the stored snapshot from another surface is shown.
        """
        self.state.unit = self.service.get_unit()
        self.state.home_hours = self.service.get_home_hours()
        location = self.service.get_saved_location()
        self.state.location = location
        if location is not None:
            self.state.search_text = location.name

        stored = self.service.get_current_snapshot()
        if stored is not None:
            self._apply_snapshot(stored)
            self.state.last_refresh = self.service.store.last_refresh()
        self._publish()

        if location is not None:
            self.update_weather(location, enforce_cooldown=True)

    def refresh(self, enforce_cooldown: bool = True) -> bool:
        """User tapped refresh."""
        if self.state.location is None:
            self._show_toast("Pick a location first")
            return False
        return self.update_weather(self.state.location, enforce_cooldown=enforce_cooldown)

    def auto_refresh_tick(self) -> bool:
        """Periodic timer tick; fetches only when the shared data is due."""
        location = self.service.get_saved_location()
        if location is None or not self.service.gate.is_due(self.refresh_interval):
            self._sync_from_store()
            return False
        self.state.location = location
        return self.update_weather(location, enforce_cooldown=True)

    def day_changed(self) -> bool:
        """Calendar day rolled over; the forecast window is for a new day."""
        location = self.service.get_saved_location()
        if location is None:
            return False
        self.state.location = location
        return self.update_weather(location, enforce_cooldown=True)

    # -- search --------------------------------------------------------------
    def update_search_text(self, text: str) -> None:
        if text == self.state.search_text:
            return
        self.state.search_text = text
        self.state.selected_suggestion = None
        self.completer.update_query(text)
        self._publish()

    def _on_suggestions(self, suggestions: List[PlaceSuggestion]) -> None:
        # Completer worker thread: hand off, state is only touched by the owner.
        self._incoming.put(suggestions)

    def process_pending(self) -> bool:
        """
        Apply suggestion lists delivered since the last call. Runs on the
        thread that owns the view model.

        Returns:
            True if the state changed and was published
        """
        latest = None
        while True:
            try:
                latest = self._incoming.get_nowait()
            except queue.Empty:
                break
        if latest is None or self.state.selected_suggestion is not None:
            return False
        self.state.suggestions = latest
        self._publish()
        return True

    def select_suggestion(self, suggestion: PlaceSuggestion) -> bool:
        """
        Switch to a picked place. Picking a location is an explicit user
        action, so the refresh bypasses the cooldown.
        """
        self.completer.cancel()
        self.state.selected_suggestion = suggestion
        self.state.search_text = suggestion.title
        self.state.suggestions = []
        self.state.is_loading = True
        self._publish()

        try:
            latitude, longitude = self.completer.provider.resolve(suggestion)
        except PlaceSearchError as e:
            logging.error(f"Error retrieving location: {e}")
            self.state.error_message = f"Error retrieving location: {e}"
            self.state.is_loading = False
            self._publish()
            return False

        location = Location(
            name=suggestion.title,
            subtitle=suggestion.subtitle,
            latitude=latitude,
            longitude=longitude,
        )
        self.service.save_location(location)
        self.state.location = location
        return self.update_weather(location, enforce_cooldown=False)

    # -- settings ------------------------------------------------------------
    def set_unit(self, unit: TemperatureUnit) -> None:
        self.service.set_unit(unit)
        self.state.unit = unit
        self._publish()

    def set_home_hours(self, home: HomeHoursWindow) -> None:
        """The optimal window follows on the next refresh."""
        self.service.set_home_hours(home)
        self.state.home_hours = home
        self._publish()

    # -- refresh -------------------------------------------------------------
    def update_weather(self, location: Location, enforce_cooldown: bool = True) -> bool:
        """
        Refresh through the engine and update the view.

        Returns:
            True if a new snapshot was applied
        """
        if not self._refresh_lock.acquire(blocking=False):
            logging.debug("Refresh already in flight, ignoring trigger")
            return False

        self.state.is_loading = True
        self._publish()
        try:
            snapshot = self.service.refresh(location, enforce_cooldown=enforce_cooldown)
        except CooldownActive:
            self._show_toast(f"Please wait {REFRESH_COOLDOWN_SECONDS} seconds between refreshes")
            return False
        except RateLimited as e:
            minutes = max(1, math.ceil(e.retry_after_seconds / 60))
            self.state.error_message = None
            self._show_toast(f"Next refresh available in {minutes} minutes")
            return False
        except UpstreamError as e:
            self.state.error_message = f"Error fetching weather: {e.cause}"
            self.state.current = None
            return False
        finally:
            self.state.is_loading = False
            self._refresh_lock.release()
            self._publish()

        self._apply_snapshot(snapshot)
        self.state.error_message = None
        self.state.last_refresh = self.time_func()
        self._publish()
        return True

    def _apply_snapshot(self, snapshot: WeatherSnapshot) -> None:
        self.state.current = snapshot.current
        self.state.hourly = list(snapshot.hourly)
        self.state.optimal_window = snapshot.optimal_window
        self.state.predicted_humidity = snapshot.predicted_humidity

    def _sync_from_store(self) -> None:
        """Pick up a snapshot another surface wrote since our last look."""
        stored = self.service.get_current_snapshot()
        last = self.service.store.last_refresh()
        if stored is None or last is None or last == self.state.last_refresh:
            return
        self._apply_snapshot(stored)
        self.state.last_refresh = last
        self._publish()

    # -- toast ---------------------------------------------------------------
    def _show_toast(self, message: str) -> None:
        logging.info(f"Toast: {message}")
        self.state.toast_message = message
        self.state.toast_expires_at = self.time_func() + TOAST_SECONDS
        self._publish()

    def expire_toast(self) -> None:
        """Drop the toast once its display time has passed."""
        expires = self.state.toast_expires_at
        if expires is not None and self.time_func() >= expires:
            self.clear_toast()

    def clear_toast(self) -> None:
        if self.state.toast_message is None:
            return
        self.state.toast_message = None
        self.state.toast_expires_at = None
        self._publish()

    # -- refresh button ------------------------------------------------------
    @property
    def can_refresh(self) -> bool:
        return self.service.gate.allows(enforce=True)

    @property
    def time_since_last_refresh(self) -> str:
        return format_elapsed(self.service.seconds_since_last_refresh())

    # -- indoor calculator ---------------------------------------------------
    def set_indoor_temperature(self, text: str) -> None:
        self.state.indoor_temperature = sanitize_temperature_input(text)
        self._publish()

    def set_indoor_humidity(self, text: str) -> None:
        self.state.indoor_humidity = sanitize_humidity_input(text)
        self._publish()

    @property
    def indoor_absolute_humidity(self) -> Optional[float]:
        try:
            temperature, humidity = parse_indoor_reading(
                self.state.indoor_temperature, self.state.indoor_humidity
            )
            return indoor_absolute_humidity(temperature, humidity, self.state.unit)
        except InvalidInputError:
            return None

    @property
    def humidity_comparison_advice(self) -> Optional[str]:
        outdoor = self.state.current.absolute_humidity if self.state.current else None
        return comparison_advice(self.indoor_absolute_humidity, outdoor)
