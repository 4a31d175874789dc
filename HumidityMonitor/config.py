"""Configuration and shared constants for the humidity monitor."""
import logging
import os
from dataclasses import dataclass
from datetime import time

from dotenv import load_dotenv

# Shared store
DEFAULT_NAMESPACE = "group.humidity-monitor"
DEFAULT_STORE_PATH = os.path.join(os.path.expanduser("~"), ".humidity-monitor", "shared.db")

# Refresh policy
REFRESH_COOLDOWN_SECONDS = 30
AUTO_REFRESH_INTERVAL_SECONDS = 30 * 60
WIDGET_TIMELINE_MINUTES = 30
DEFAULT_RATE_LIMIT_RETRY_SECONDS = 300

# Forecast and window
FORECAST_HORIZON_HOURS = 24
OPTIMAL_WINDOW_HOURS = 2
DEFAULT_HOME_START = time(8, 0)
DEFAULT_HOME_END = time(20, 0)

# Upstream services
OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
DEFAULT_HTTP_TIMEOUT = 10


@dataclass
class AppConfig:
    store_path: str = DEFAULT_STORE_PATH
    namespace: str = DEFAULT_NAMESPACE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    refresh_interval: float = AUTO_REFRESH_INTERVAL_SECONDS
    forecast_url: str = OPEN_METEO_URL
    geocoding_url: str = OPEN_METEO_GEOCODING_URL


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise SystemExit(f"Invalid {name}: {raw!r}") from exc


def load_config() -> AppConfig:
    """
    Load configuration from the environment (and a ``.env`` file if present).

    Returns:
        AppConfig: Resolved configuration

    Raises:
        SystemExit: If a numeric setting cannot be parsed
    """
    load_dotenv()
    config = AppConfig(
        store_path=os.getenv("HUMIDITY_STORE_PATH", DEFAULT_STORE_PATH),
        namespace=os.getenv("HUMIDITY_NAMESPACE", DEFAULT_NAMESPACE),
        http_timeout=_float_env("HUMIDITY_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        refresh_interval=_float_env("HUMIDITY_REFRESH_INTERVAL", AUTO_REFRESH_INTERVAL_SECONDS),
        forecast_url=os.getenv("OPEN_METEO_URL", OPEN_METEO_URL),
        geocoding_url=os.getenv("OPEN_METEO_GEOCODING_URL", OPEN_METEO_GEOCODING_URL),
    )
    if config.refresh_interval < REFRESH_COOLDOWN_SECONDS:
        raise SystemExit(
            f"HUMIDITY_REFRESH_INTERVAL must be at least {REFRESH_COOLDOWN_SECONDS} seconds"
        )
    logging.info(
        "Configuration loaded: store=%s namespace=%s timeout=%ss refresh=%ss",
        config.store_path,
        config.namespace,
        config.http_timeout,
        config.refresh_interval,
    )
    return config
