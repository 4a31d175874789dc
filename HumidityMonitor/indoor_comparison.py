"""Indoor vs outdoor absolute humidity comparison."""
import re
from typing import Optional

from errors import InvalidInputError
from humidity_math import absolute_humidity, to_celsius
from weather_data import TemperatureUnit

ADVICE_OPEN = "Opening windows now could reduce indoor humidity"
ADVICE_KEEP_CLOSED = "Keep windows closed to maintain lower humidity"


def sanitize_temperature_input(text: str) -> str:
    """
    Clean a typed temperature: commas become periods, only digits and one
    period survive, at most two decimals, and a leading period gets a zero.
    """
    filtered = "".join(ch for ch in text.replace(",", ".") if ch in "0123456789.")
    whole, dot, decimals = filtered.partition(".")
    result = whole
    if dot:
        result += "." + decimals.replace(".", "")[:2]
    if result.startswith("."):
        result = "0" + result
    return result


def sanitize_humidity_input(text: str) -> str:
    """Keep up to three digits of a typed humidity percentage."""
    return re.sub(r"\D", "", text)[:3]


def parse_indoor_reading(temperature_text: str, humidity_text: str):
    """
    Parse indoor temperature and humidity text.

    Raises:
        InvalidInputError: If either value is not a number or humidity is outside 0-100
    """
    try:
        temperature = float(temperature_text)
        humidity = float(humidity_text)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid indoor reading: {exc}") from exc
    if not 0 <= humidity <= 100:
        raise InvalidInputError(f"Humidity must be between 0 and 100, got {humidity}")
    return temperature, humidity


def indoor_absolute_humidity(temperature: float, humidity: float, unit: TemperatureUnit) -> float:
    """Absolute humidity indoors; the temperature is in the user's display unit."""
    if not 0 <= humidity <= 100:
        raise InvalidInputError(f"Humidity must be between 0 and 100, got {humidity}")
    return absolute_humidity(to_celsius(temperature, unit), humidity)


def comparison_advice(indoor_absolute: Optional[float], outdoor_absolute: Optional[float]) -> Optional[str]:
    if indoor_absolute is None or outdoor_absolute is None:
        return None
    if indoor_absolute > outdoor_absolute:
        return ADVICE_OPEN
    return ADVICE_KEEP_CLOSED
