"""Optimal ventilation window selection."""
from datetime import timedelta
from typing import Optional, Sequence

from config import OPTIMAL_WINDOW_HOURS
from weather_data import HomeHoursWindow, HourlyHumidityPoint, OptimalWindow

WINDOW_SPAN = timedelta(hours=OPTIMAL_WINDOW_HOURS)


def select_optimal_window(
    hourly: Sequence[HourlyHumidityPoint],
    home: HomeHoursWindow,
) -> Optional[OptimalWindow]:
    """
    Pick the 2-hour window starting at the driest forecast hour spent at home.

    Only the hour of each point is compared against the home-hours bounds
    (inclusive on both ends); minutes are ignored. Ties go to the earliest
    point. The window is not clamped to ``home.end``.

    Args:
        hourly: Chronological hourly humidity forecast
        home: Home-hours interval

    Returns:
        The window, or None if no forecast hour falls within home hours
    """
    candidates = [
        point for point in hourly
        if home.start.hour <= point.timestamp.hour <= home.end.hour
    ]
    if not candidates:
        return None

    best = min(candidates, key=lambda point: (point.relative_humidity, point.timestamp))
    return OptimalWindow(start=best.timestamp, end=best.timestamp + WINDOW_SPAN)


def predicted_humidity(
    hourly: Sequence[HourlyHumidityPoint],
    window: Optional[OptimalWindow],
) -> Optional[float]:
    """Lowest forecast humidity inside the window, or None."""
    if window is None:
        return None
    inside = [point.relative_humidity for point in hourly if window.contains(point.timestamp)]
    if not inside:
        return None
    return min(inside)
