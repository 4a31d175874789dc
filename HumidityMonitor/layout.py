"""Text layout for each surface - pure functions for testability."""
from datetime import datetime
from typing import List, Optional

from humidity_math import from_celsius
from weather_data import OptimalWindow, TemperatureUnit

NO_LOCATION_TEXT = "No location set"
PLACEHOLDER = "--"


def format_temperature(value_c: Optional[float], unit: Optional[TemperatureUnit]) -> str:
    """
    Format a Celsius temperature in the user's unit.

    Args:
        value_c: Temperature in Celsius (None renders a placeholder)
        unit: Display unit; None means Celsius

    Returns:
        Text such as "22.5°C" or "72.5°F"
    """
    if value_c is None:
        return PLACEHOLDER
    unit = unit or TemperatureUnit.CELSIUS
    return f"{from_celsius(value_c, unit):.1f}{unit.symbol}"


def format_degrees(value: Optional[float], unit: Optional[TemperatureUnit]) -> str:
    """Format a temperature already expressed in ``unit``."""
    if value is None:
        return PLACEHOLDER
    unit = unit or TemperatureUnit.CELSIUS
    return f"{value:.1f}{unit.symbol}"


def format_humidity(percent: Optional[float]) -> str:
    if percent is None:
        return PLACEHOLDER
    return f"{int(percent)}%"


def format_absolute_humidity(value: Optional[float]) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:.1f} g/m³"


def format_time(moment: Optional[datetime]) -> str:
    if moment is None:
        return PLACEHOLDER
    return moment.strftime("%H:%M")


def format_window(window: Optional[OptimalWindow]) -> str:
    if window is None:
        return "No window in forecast"
    return f"{format_time(window.start)} - {format_time(window.end)}"


def format_elapsed(seconds: float) -> str:
    """Abbreviated elapsed time, e.g. "2m 5s"."""
    if seconds == float("inf"):
        return "never"
    seconds = int(seconds)
    minutes, secs = divmod(seconds, 60)
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def humidity_widget_lines(entry) -> List[str]:
    """Lines for the current-conditions widget."""
    if entry.relative_humidity is None:
        return ["HUMIDITY", NO_LOCATION_TEXT, f"Updated {format_time(entry.last_refresh)}"]
    return [
        f"HUMIDITY {format_humidity(entry.relative_humidity)}",
        f"Abs Humidity: {format_absolute_humidity(entry.absolute_humidity)}",
        f"Dew Point: {format_degrees(entry.dew_point, entry.unit)}",
        f"Temperature: {format_degrees(entry.temperature, entry.unit)}",
        f"Feels Like: {format_degrees(entry.feels_like, entry.unit)}",
        f"Updated {format_time(entry.last_refresh)}",
    ]


def ventilation_widget_lines(entry) -> List[str]:
    """Lines for the optimal-window widget."""
    lines = ["OPTIMAL WINDOW", format_window(entry.optimal_window)]
    if entry.predicted_humidity is not None:
        lines.append(f"Predicted: {format_humidity(entry.predicted_humidity)}")
    if entry.relative_humidity is not None:
        lines.append(f"Now: {format_humidity(entry.relative_humidity)}")
    lines.append(f"Updated {format_time(entry.last_refresh)}")
    return lines


def main_view_lines(state) -> List[str]:
    """Summary lines for the main application view."""
    lines = [state.location.name if state.location else NO_LOCATION_TEXT]
    if state.error_message:
        lines.append(state.error_message)
    current = state.current
    if current is not None:
        lines.extend([
            f"Humidity: {format_humidity(current.relative_humidity)}",
            f"Absolute: {format_absolute_humidity(current.absolute_humidity)}",
            f"Temperature: {format_temperature(current.temperature_c, state.unit)}",
            f"Feels Like: {format_temperature(current.apparent_temperature_c, state.unit)}",
            f"Dew Point: {format_temperature(current.dew_point_c, state.unit)}",
        ])
    if state.hourly:
        lines.append(f"Best time to ventilate: {format_window(state.optimal_window)}")
        if state.predicted_humidity is not None:
            lines.append(f"Expected humidity: {format_humidity(state.predicted_humidity)}")
    if state.toast_message:
        lines.append(state.toast_message)
    return lines
