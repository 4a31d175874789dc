"""Humidity and temperature conversions - pure functions for testability."""
import math

from weather_data import TemperatureUnit


def absolute_humidity(temp_celsius: float, relative_humidity_percent: float) -> float:
    """
    Compute absolute humidity using a Magnus-type approximation.

    The temperature must already be in Celsius. The result is undefined at
    -273.15°C (division by zero), which no weather reading reaches.

    Args:
        temp_celsius: Air temperature in Celsius
        relative_humidity_percent: Relative humidity as a 0-100 percentage

    Returns:
        Grams of water vapour per cubic metre of air
    """
    saturation = 6.112 * math.exp((17.67 * temp_celsius) / (temp_celsius + 243.5))
    return (saturation * relative_humidity_percent * 2.1674) / (temp_celsius + 273.15)


def celsius_to_fahrenheit(value: float) -> float:
    return value * 9 / 5 + 32


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32) * 5 / 9


def to_celsius(value: float, unit: TemperatureUnit) -> float:
    """Convert a temperature expressed in ``unit`` to Celsius."""
    if unit is TemperatureUnit.FAHRENHEIT:
        return fahrenheit_to_celsius(value)
    return value


def from_celsius(value_c: float, unit: TemperatureUnit) -> float:
    """Convert a Celsius temperature to ``unit`` for display."""
    if unit is TemperatureUnit.FAHRENHEIT:
        return celsius_to_fahrenheit(value_c)
    return value_c
