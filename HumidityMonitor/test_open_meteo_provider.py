"""Tests for Open-Meteo provider."""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from open_meteo_provider import OpenMeteoProvider
from weather_provider import CurrentReading, RateLimitedError, WeatherProviderError


@pytest.fixture
def sample_current_response():
    """Sample Open-Meteo current conditions response."""
    return {
        "latitude": 38.72,
        "longitude": -9.14,
        "utc_offset_seconds": 3600,
        "timezone": "Europe/Lisbon",
        "current": {
            "time": "2025-06-01T10:15",
            "interval": 900,
            "temperature_2m": 22.5,
            "relative_humidity_2m": 65,
            "apparent_temperature": 23.1,
            "dew_point_2m": 15.6,
        },
    }


@pytest.fixture
def sample_hourly_response():
    """Sample Open-Meteo hourly forecast response (UTC+1)."""
    return {
        "latitude": 38.72,
        "longitude": -9.14,
        "utc_offset_seconds": 3600,
        "hourly": {
            "time": [
                "2025-06-01T09:00",
                "2025-06-01T10:00",
                "2025-06-01T11:00",
                "2025-06-01T12:00",
                "2025-06-02T09:00",
                "2025-06-02T10:00",
            ],
            "relative_humidity_2m": [70, 65, None, 58, 80, 81],
        },
    }


@pytest.fixture
def provider():
    """Create Open-Meteo provider instance."""
    return OpenMeteoProvider(base_url="https://example.test/v1/forecast", timeout=5)


def _ok(payload):
    response = Mock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = payload
    return response


def test_open_meteo_current_success(provider, sample_current_response):
    """Test successful current conditions call and parsing."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = _ok(sample_current_response)

        reading = provider.get_current(38.72, -9.14)

        assert reading == CurrentReading(
            temperature_c=22.5,
            apparent_temperature_c=23.1,
            dew_point_c=15.6,
            relative_humidity_fraction=0.65,
        )
        _, kwargs = mock_get.call_args
        assert kwargs["params"]["latitude"] == 38.72
        assert kwargs["params"]["timezone"] == "auto"
        assert "relative_humidity_2m" in kwargs["params"]["current"]
        assert kwargs["timeout"] == 5


def test_open_meteo_hourly_filters_range(provider, sample_hourly_response):
    """Test hourly parsing, local offset and start <= t < end filtering."""
    start = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
    end = start + timedelta(hours=24)

    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = _ok(sample_hourly_response)

        readings = provider.get_hourly(38.72, -9.14, start, end)

    # 09:00 local is before start; 11:00 has no humidity; 10:00 next day equals end
    assert [r.timestamp.hour for r in readings] == [10, 12, 9]
    assert [r.relative_humidity_fraction for r in readings] == pytest.approx([0.65, 0.58, 0.80])
    assert readings[0].timestamp.utcoffset() == timedelta(hours=1)
    assert readings[0].timestamp == start


def test_open_meteo_hourly_requests_enough_days(provider, sample_hourly_response):
    """A 24-hour range starting mid-day spans two forecast days."""
    start = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)

    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = _ok(sample_hourly_response)
        provider.get_hourly(38.72, -9.14, start, start + timedelta(hours=24))

        _, kwargs = mock_get.call_args
        assert kwargs["params"]["forecast_days"] == 2
        assert kwargs["params"]["hourly"] == "relative_humidity_2m"


def test_open_meteo_http_error(provider):
    """Test handling of HTTP errors with a JSON reason."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = Mock()
        mock_response.ok = False
        mock_response.status_code = 400
        mock_response.json.return_value = {
            "error": True,
            "reason": "Latitude must be in range of -90 to 90°.",
        }
        mock_get.return_value = mock_response

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_current(123.0, 0.0)

        assert "400" in str(exc_info.value)
        assert "Latitude must be in range" in str(exc_info.value)


def test_open_meteo_non_json_error(provider):
    """Test handling of HTTP errors without a JSON body."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = Mock()
        mock_response.ok = False
        mock_response.status_code = 502
        mock_response.text = "Bad Gateway"
        mock_response.json.side_effect = ValueError("No JSON")
        mock_get.return_value = mock_response

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_current(38.72, -9.14)

        assert "HTTP 502: Bad Gateway" in str(exc_info.value)


def test_open_meteo_rate_limited(provider):
    """Test 429 responses carry the Retry-After delay."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = Mock()
        mock_response.ok = False
        mock_response.status_code = 429
        mock_response.headers = {"Retry-After": "120"}
        mock_get.return_value = mock_response

        with pytest.raises(RateLimitedError) as exc_info:
            provider.get_current(38.72, -9.14)

        assert exc_info.value.retry_after_seconds == 120


def test_open_meteo_rate_limited_default_delay(provider):
    """Test 429 without Retry-After falls back to five minutes."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = Mock()
        mock_response.ok = False
        mock_response.status_code = 429
        mock_response.headers = {}
        mock_get.return_value = mock_response

        with pytest.raises(RateLimitedError) as exc_info:
            provider.get_hourly(
                38.72, -9.14,
                datetime(2025, 6, 1, tzinfo=timezone.utc),
                datetime(2025, 6, 2, tzinfo=timezone.utc),
            )

        assert exc_info.value.retry_after_seconds == 300


def test_open_meteo_network_error(provider):
    """Test handling of network errors."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError("Connection refused")

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_current(38.72, -9.14)

        assert "Network error" in str(exc_info.value)


def test_open_meteo_invalid_json(provider):
    """Test handling of a 200 response that is not JSON."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = Mock()
        mock_response.ok = True
        mock_response.status_code = 200
        mock_response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = mock_response

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_current(38.72, -9.14)

        assert "Failed to parse response" in str(exc_info.value)


def test_open_meteo_missing_current(provider):
    """Test handling of missing current block."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = _ok({"latitude": 38.72, "longitude": -9.14})

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_current(38.72, -9.14)

        assert "missing 'current' block" in str(exc_info.value)


def test_open_meteo_incomplete_current(provider, sample_current_response):
    """Test handling of a current block without humidity."""
    del sample_current_response["current"]["relative_humidity_2m"]

    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = _ok(sample_current_response)

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_current(38.72, -9.14)

        assert "Failed to parse response" in str(exc_info.value)


def test_open_meteo_missing_hourly(provider):
    """Test handling of missing hourly block."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = _ok({"utc_offset_seconds": 0})

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.get_hourly(
                38.72, -9.14,
                datetime(2025, 6, 1, tzinfo=timezone.utc),
                datetime(2025, 6, 2, tzinfo=timezone.utc),
            )

        assert "missing 'hourly' block" in str(exc_info.value)
