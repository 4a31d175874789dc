"""Open-Meteo forecast API provider implementation."""
import logging
import math
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import requests

from config import DEFAULT_RATE_LIMIT_RETRY_SECONDS, OPEN_METEO_URL
from weather_provider import (
    CurrentReading,
    HourlyReading,
    RateLimitedError,
    WeatherProviderBase,
    WeatherProviderError,
)

CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,apparent_temperature,dew_point_2m"


class OpenMeteoProvider(WeatherProviderBase):
    """
    Weather provider using the Open-Meteo forecast API.

    Open-Meteo needs no API key. Responses are requested in the location's own
    timezone (``timezone=auto``) so hourly timestamps carry the local UTC
    offset. Humidity arrives as a percentage and is reported as a 0..1
    fraction to match the provider contract.
    """

    def __init__(self, base_url: str = OPEN_METEO_URL, timeout: float = 10):
        """
        Initialize Open-Meteo provider.

        Args:
            base_url: Forecast endpoint
            timeout: HTTP request timeout in seconds
        """
        self.base_url = base_url
        self.timeout = timeout

    def get_current(self, latitude: float, longitude: float) -> CurrentReading:
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": CURRENT_FIELDS,
            "temperature_unit": "celsius",
            "timezone": "auto",
        }
        data = self._get(params)

        current = data.get("current")
        if not current:
            logging.error("Response missing 'current' block")
            raise WeatherProviderError("Response missing 'current' block")

        try:
            reading = CurrentReading(
                temperature_c=float(current["temperature_2m"]),
                apparent_temperature_c=float(current["apparent_temperature"]),
                dew_point_c=float(current["dew_point_2m"]),
                relative_humidity_fraction=float(current["relative_humidity_2m"]) / 100.0,
            )
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Failed to parse current conditions: {e}", exc_info=True)
            raise WeatherProviderError(f"Failed to parse response: {e}") from e

        logging.info(
            f"Current conditions: {reading.temperature_c}°C, "
            f"RH {reading.relative_humidity_fraction:.0%}"
        )
        return reading

    def get_hourly(
        self,
        latitude: float,
        longitude: float,
        start: datetime,
        end: datetime,
    ) -> List[HourlyReading]:
        """
        Fetch hourly humidity between two timezone-aware instants.

        Open-Meteo only accepts whole forecast days, so enough days are
        requested to cover the range and the result is filtered locally.
        """
        days = max(1, math.ceil((end - start).total_seconds() / 86400) + 1)
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": "relative_humidity_2m",
            "forecast_days": min(days, 16),
            "timezone": "auto",
        }
        data = self._get(params)

        hourly = data.get("hourly")
        if not hourly:
            logging.error("Response missing 'hourly' block")
            raise WeatherProviderError("Response missing 'hourly' block")

        offset = timedelta(seconds=int(data.get("utc_offset_seconds", 0)))
        tz = timezone(offset)
        times = hourly.get("time") or []
        humidities = hourly.get("relative_humidity_2m") or []

        readings: List[HourlyReading] = []
        for stamp, humidity in zip(times, humidities):
            if humidity is None:
                logging.debug(f"Skipping hour {stamp} without humidity")
                continue
            try:
                moment = datetime.fromisoformat(stamp).replace(tzinfo=tz)
                fraction = float(humidity) / 100.0
            except (TypeError, ValueError) as e:
                raise WeatherProviderError(f"Failed to parse response: {e}") from e
            if start <= moment < end:
                readings.append(HourlyReading(moment, fraction))

        logging.info(f"Hourly forecast: {len(readings)} hours between {start} and {end}")
        return readings

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            logging.info(f"Making Open-Meteo API request: {self.base_url}")
            logging.debug(f"Request parameters: {params}")

            response = requests.get(self.base_url, params=params, timeout=self.timeout)

            logging.info(f"API response status: {response.status_code}")
            if not response.ok:
                logging.error(f"API request failed with status {response.status_code}")
                self._handle_error_response(response)

            data = response.json()
            logging.debug(f"API response (truncated): {str(data)[:500]}...")
            return data
        except ValueError as e:
            # requests' JSONDecodeError is also a RequestException
            logging.error(f"Failed to decode API response: {e}")
            raise WeatherProviderError(f"Failed to parse response: {e}") from e
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise WeatherProviderError(f"Network error: {e}") from e

    def _handle_error_response(self, response: requests.Response) -> None:
        """Parse and raise error from an Open-Meteo error response."""
        if response.status_code == 429:
            retry_after = _retry_after_seconds(response.headers.get("Retry-After"))
            logging.warning(f"Open-Meteo rate limit hit, retry after {retry_after:.0f}s")
            raise RateLimitedError("HTTP 429: rate limit exceeded", retry_after)

        try:
            error_data = response.json()
        except ValueError:
            logging.error(f"Non-JSON error response: HTTP {response.status_code}, body: {response.text[:500]}")
            raise WeatherProviderError(f"HTTP {response.status_code}: {response.text[:200]}")

        reason = error_data.get("reason", "Unknown error")
        logging.error(f"Open-Meteo API error response: {error_data}")
        raise WeatherProviderError(f"Open-Meteo API error {response.status_code}: {reason}")


def _retry_after_seconds(header: Optional[str]) -> float:
    if not header:
        return float(DEFAULT_RATE_LIMIT_RETRY_SECONDS)
    try:
        return max(0.0, float(header))
    except ValueError:
        # HTTP-date form
        try:
            moment = parsedate_to_datetime(header)
        except (TypeError, ValueError):
            return float(DEFAULT_RATE_LIMIT_RETRY_SECONDS)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return max(0.0, (moment - datetime.now(timezone.utc)).total_seconds())
