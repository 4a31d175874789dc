"""Run one humidity surface on a timer and log what it would display."""
import argparse
import logging
import signal
import sys
import time
from datetime import date
from typing import List

from config import AppConfig, load_config
from layout import humidity_widget_lines, main_view_lines, ventilation_widget_lines
from open_meteo_provider import OpenMeteoProvider
from place_search import OpenMeteoGeocoder, PlaceCompleter, PlaceSearchError
from shared_store import SharedStore
from view_model import WeatherViewModel
from weather_data import Location, TemperatureUnit
from weather_service import WeatherService
from widgets import HumidityWidgetProvider, VentilationWidgetProvider

SURFACES = ("app", "humidity-widget", "ventilation-widget")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser("Humidity monitor surface runner")
    parser.add_argument("--surface", choices=SURFACES, default="app")
    parser.add_argument("--search", help="Look up a place and save the first match as the location")
    parser.add_argument("--units", choices=[unit.value for unit in TemperatureUnit])
    parser.add_argument("--tick", type=float, default=60.0, help="Seconds between timer ticks")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    parser.add_argument("--log-file", default="")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def build_weather_service(config: AppConfig) -> WeatherService:
    store = SharedStore(config.store_path, namespace=config.namespace)
    provider = OpenMeteoProvider(base_url=config.forecast_url, timeout=config.http_timeout)
    service = WeatherService(provider=provider, store=store)
    logging.info("Weather service ready (store=%s)", config.store_path)
    return service


def save_searched_location(service: WeatherService, geocoder: OpenMeteoGeocoder, query: str) -> None:
    suggestions = geocoder.complete(query)
    if not suggestions:
        raise SystemExit(f"No place found for {query!r}")
    picked = suggestions[0]
    latitude, longitude = geocoder.resolve(picked)
    service.save_location(Location(picked.title, picked.subtitle, latitude, longitude))


def log_lines(lines: List[str]) -> None:
    for line in lines:
        logging.info("| %s", line)


def run_app(service: WeatherService, geocoder: OpenMeteoGeocoder, args, config: AppConfig) -> None:
    completer = PlaceCompleter(geocoder)
    view_model = WeatherViewModel(service, completer, refresh_interval=config.refresh_interval)
    view_model.start()
    log_lines(main_view_lines(view_model.state))
    today = date.today()
    try:
        while not args.once:
            time.sleep(max(args.tick, 1.0))
            if date.today() != today:
                today = date.today()
                view_model.day_changed()
            else:
                view_model.auto_refresh_tick()
            view_model.process_pending()
            view_model.expire_toast()
            log_lines(main_view_lines(view_model.state))
    finally:
        completer.close()


def run_widget(service: WeatherService, args, config: AppConfig) -> None:
    interval_minutes = int(config.refresh_interval // 60)
    if args.surface == "humidity-widget":
        provider = HumidityWidgetProvider(service, interval_minutes=interval_minutes)
        render = humidity_widget_lines
    else:
        provider = VentilationWidgetProvider(service, interval_minutes=interval_minutes)
        render = ventilation_widget_lines

    while True:
        timeline = provider.timeline()
        for entry in timeline.entries:
            log_lines(render(entry))
        if args.once:
            return
        logging.info("Next widget update at %s", timeline.next_update.isoformat())
        time.sleep(max(args.tick, 1.0))


def signal_handler(signum, frame):
    logging.info("Received signal %s, shutting down", signum)
    raise KeyboardInterrupt()


def main() -> None:
    args = parse_args()
    setup_logging(args.log_file, args.verbose)
    config = load_config()

    service = build_weather_service(config)
    geocoder = OpenMeteoGeocoder(base_url=config.geocoding_url, timeout=config.http_timeout)
    if args.units:
        service.set_unit(TemperatureUnit(args.units))
    if args.search:
        try:
            save_searched_location(service, geocoder, args.search)
        except PlaceSearchError as exc:
            raise SystemExit(f"Place search failed: {exc}") from exc

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if args.surface == "app":
            run_app(service, geocoder, args, config)
        else:
            run_widget(service, args, config)
    except KeyboardInterrupt:
        logging.info("Stopping surface")


if __name__ == "__main__":
    main()
