"""Shared key/value store read and written by every surface on the device.

Each surface runs in its own process and only shares this store. Values are
JSON documents in a single SQLite table keyed by ``(namespace, key)``. A
snapshot is always written in one ``BEGIN IMMEDIATE`` transaction and read
with one statement, so a reader never pairs the optimal window of one fetch
with the hourly series of another.
"""
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, time
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from config import DEFAULT_NAMESPACE
from weather_data import (
    CurrentConditions,
    HomeHoursWindow,
    HourlyHumidityPoint,
    Location,
    OptimalWindow,
    TemperatureUnit,
    WeatherSnapshot,
)

KEY_LOCATION = "SavedLocation"
KEY_UNIT = "TemperatureUnit"
KEY_HOME_HOURS = "HomeHours"
KEY_LAST_REFRESH = "LastRefresh"
KEY_HOURLY = "HourlyHumidity"
KEY_WINDOW_START = "OptimalWindowStart"
KEY_WINDOW_END = "OptimalWindowEnd"
KEY_PREDICTED = "PredictedHumidity"
KEY_RELATIVE = "relativeHumidity"
KEY_ABSOLUTE = "absoluteHumidity"
KEY_CURRENT = "CurrentConditions"
KEY_FETCHED_AT = "FetchedAt"
KEY_VERSION = "SnapshotVersion"

SNAPSHOT_KEYS = (
    KEY_HOURLY,
    KEY_WINDOW_START,
    KEY_WINDOW_END,
    KEY_PREDICTED,
    KEY_RELATIVE,
    KEY_ABSOLUTE,
    KEY_CURRENT,
    KEY_FETCHED_AT,
    KEY_VERSION,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS shared_values (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (namespace, key)
)
"""


class StoreDecodeError(ValueError):
    """A persisted value is corrupt or does not match the expected schema."""
    pass


class SharedStore:
    """Namespaced key/value persistence shared across processes."""

    def __init__(self, path: str, namespace: str = DEFAULT_NAMESPACE, timeout: float = 5.0):
        self.path = path
        self.namespace = namespace
        self.timeout = timeout
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(_SCHEMA)

    # -- raw key/value -------------------------------------------------------
    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _decode(self, key: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StoreDecodeError(f"{key}: {exc}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        """Read one value; missing or corrupt values return ``default``."""
        return self.get_many([key]).get(key, default)

    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """
        Read several keys with a single statement.

        Corrupt values are logged and left out of the result, as if unset.
        """
        keys = list(keys)
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT key, value FROM shared_values WHERE namespace = ? AND key IN ({placeholders})",
                (self.namespace, *keys),
            ).fetchall()

        values: Dict[str, Any] = {}
        for key, raw in rows:
            try:
                values[key] = self._decode(key, raw)
            except StoreDecodeError as exc:
                logging.warning(f"Ignoring corrupt stored value: {exc}")
        return values

    def set(self, key: str, value: Any) -> None:
        self.write_many({key: value})

    def delete(self, key: str) -> None:
        self.write_many({key: None})

    def write_many(self, values: Mapping[str, Any]) -> None:
        """Write all values in one transaction. ``None`` deletes the key."""
        with self._transaction() as conn:
            self._write(conn, values)

    def _write(self, conn: sqlite3.Connection, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            if value is None:
                conn.execute(
                    "DELETE FROM shared_values WHERE namespace = ? AND key = ?",
                    (self.namespace, key),
                )
            else:
                conn.execute(
                    "INSERT OR REPLACE INTO shared_values (namespace, key, value) VALUES (?, ?, ?)",
                    (self.namespace, key, json.dumps(value)),
                )

    # -- preferences ---------------------------------------------------------
    def load_location(self) -> Optional[Location]:
        data = self.get(KEY_LOCATION)
        if data is None:
            logging.debug("No saved location in shared store")
            return None
        try:
            location = Location(
                name=str(data["name"]),
                subtitle=str(data.get("subtitle", "")),
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logging.warning(f"Ignoring corrupt saved location: {exc}")
            return None
        logging.debug(f"Loaded location: {location.describe()}")
        return location

    def save_location(self, location: Location) -> None:
        self.set(KEY_LOCATION, {
            "name": location.name,
            "subtitle": location.subtitle,
            "latitude": location.latitude,
            "longitude": location.longitude,
        })

    def load_unit(self) -> TemperatureUnit:
        return TemperatureUnit.parse(self.get(KEY_UNIT))

    def save_unit(self, unit: TemperatureUnit) -> None:
        self.set(KEY_UNIT, unit.value)

    def load_home_hours(self) -> HomeHoursWindow:
        data = self.get(KEY_HOME_HOURS)
        if data is None:
            return HomeHoursWindow()
        try:
            return HomeHoursWindow(
                start=time.fromisoformat(data["start"]),
                end=time.fromisoformat(data["end"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logging.warning(f"Ignoring corrupt home hours, using defaults: {exc}")
            return HomeHoursWindow()

    def save_home_hours(self, home: HomeHoursWindow) -> None:
        self.set(KEY_HOME_HOURS, {
            "start": home.start.strftime("%H:%M"),
            "end": home.end.strftime("%H:%M"),
        })

    def last_refresh(self) -> Optional[float]:
        """Epoch seconds of the last successful refresh by any surface."""
        value = self.get(KEY_LAST_REFRESH)
        if isinstance(value, (int, float)):
            return float(value)
        return None

    # -- snapshot ------------------------------------------------------------
    def save_snapshot(self, snapshot: WeatherSnapshot, refreshed_at: float) -> int:
        """
        Persist a complete snapshot and the last-refresh time atomically.

        Returns:
            The new snapshot version (monotonic across processes)
        """
        window = snapshot.optimal_window
        current = snapshot.current
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT value FROM shared_values WHERE namespace = ? AND key = ?",
                (self.namespace, KEY_VERSION),
            ).fetchone()
            try:
                version = int(json.loads(row[0])) + 1 if row else 1
            except (TypeError, ValueError):
                version = 1
            self._write(conn, {
                KEY_RELATIVE: current.relative_humidity,
                KEY_ABSOLUTE: current.absolute_humidity,
                KEY_CURRENT: {
                    "temperature_c": current.temperature_c,
                    "apparent_temperature_c": current.apparent_temperature_c,
                    "dew_point_c": current.dew_point_c,
                },
                KEY_HOURLY: [
                    {"date": point.timestamp.isoformat(), "humidity": point.relative_humidity}
                    for point in snapshot.hourly
                ],
                KEY_WINDOW_START: window.start.isoformat() if window else None,
                KEY_WINDOW_END: window.end.isoformat() if window else None,
                KEY_PREDICTED: snapshot.predicted_humidity,
                KEY_FETCHED_AT: snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
                KEY_VERSION: version,
                KEY_LAST_REFRESH: refreshed_at,
            })
        snapshot.version = version
        logging.debug(f"Snapshot v{version} persisted ({len(snapshot.hourly)} hourly points)")
        return version

    def load_snapshot(self) -> Optional[WeatherSnapshot]:
        """Read the latest snapshot, or None if nothing usable is stored."""
        values = self.get_many(SNAPSHOT_KEYS)
        try:
            conditions = values[KEY_CURRENT]
            current = CurrentConditions(
                temperature_c=float(conditions["temperature_c"]),
                apparent_temperature_c=float(conditions["apparent_temperature_c"]),
                dew_point_c=float(conditions["dew_point_c"]),
                relative_humidity=float(values[KEY_RELATIVE]),
                absolute_humidity=float(values[KEY_ABSOLUTE]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            if values:
                logging.warning(f"Stored snapshot unusable: {exc}")
            return None

        snapshot = WeatherSnapshot(current=current)
        try:
            snapshot.version = int(values.get(KEY_VERSION) or 0)
        except (TypeError, ValueError) as exc:
            logging.warning(f"Ignoring corrupt snapshot version: {exc}")
        try:
            fetched_at = values.get(KEY_FETCHED_AT)
            snapshot.fetched_at = datetime.fromisoformat(fetched_at) if fetched_at else None
        except (TypeError, ValueError) as exc:
            logging.warning(f"Ignoring corrupt fetch timestamp: {exc}")

        # The series and the window derived from it are only used together.
        try:
            if KEY_HOURLY not in values and values.get(KEY_WINDOW_START) is not None:
                raise ValueError("window stored without its hourly series")
            snapshot.hourly = _decode_hourly(values.get(KEY_HOURLY) or [])
            snapshot.optimal_window = _decode_window(
                values.get(KEY_WINDOW_START), values.get(KEY_WINDOW_END)
            )
            predicted = values.get(KEY_PREDICTED)
            snapshot.predicted_humidity = float(predicted) if predicted is not None else None
        except (KeyError, TypeError, ValueError) as exc:
            logging.warning(f"Ignoring corrupt hourly series/window: {exc}")
            snapshot.hourly = []
            snapshot.optimal_window = None
            snapshot.predicted_humidity = None
        return snapshot


def _decode_hourly(items: List[Dict[str, Any]]) -> List[HourlyHumidityPoint]:
    return [
        HourlyHumidityPoint(
            timestamp=datetime.fromisoformat(item["date"]),
            relative_humidity=float(item["humidity"]),
        )
        for item in items
    ]


def _decode_window(start: Optional[str], end: Optional[str]) -> Optional[OptimalWindow]:
    if start is None or end is None:
        return None
    return OptimalWindow(start=datetime.fromisoformat(start), end=datetime.fromisoformat(end))
