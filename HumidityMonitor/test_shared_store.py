"""Tests for the shared persisted store."""
import sqlite3
from datetime import datetime, time, timedelta, timezone

import pytest

from shared_store import (
    KEY_HOME_HOURS,
    KEY_HOURLY,
    KEY_LOCATION,
    KEY_UNIT,
    KEY_VERSION,
    KEY_WINDOW_START,
    SharedStore,
)
from weather_data import (
    CurrentConditions,
    HomeHoursWindow,
    HourlyHumidityPoint,
    Location,
    OptimalWindow,
    TemperatureUnit,
    WeatherSnapshot,
)

DAY = datetime(2025, 6, 1, tzinfo=timezone(timedelta(hours=1)))


def _snapshot(window=True):
    hourly = [HourlyHumidityPoint(DAY.replace(hour=h), 50.0 + h) for h in range(8, 12)]
    return WeatherSnapshot(
        current=CurrentConditions(
            temperature_c=21.0,
            apparent_temperature_c=20.5,
            dew_point_c=12.0,
            relative_humidity=60.0,
            absolute_humidity=11.0,
        ),
        hourly=hourly,
        optimal_window=OptimalWindow(hourly[0].timestamp, hourly[0].timestamp + timedelta(hours=2)) if window else None,
        predicted_humidity=58.0 if window else None,
        fetched_at=datetime(2025, 6, 1, 7, 30, tzinfo=timezone.utc),
    )


def _corrupt(store, key, raw):
    """Write a raw, non-JSON value behind the store's back."""
    conn = sqlite3.connect(store.path)
    with conn:
        conn.execute(
            "INSERT OR REPLACE INTO shared_values (namespace, key, value) VALUES (?, ?, ?)",
            (store.namespace, key, raw),
        )
    conn.close()


def test_get_set_delete(store):
    """Plain key/value round trip."""
    assert store.get("missing", "default") == "default"
    store.set("answer", {"value": 42})
    assert store.get("answer") == {"value": 42}
    store.delete("answer")
    assert store.get("answer") is None


def test_namespaces_are_isolated(tmp_path):
    """Two namespaces in one file do not see each other."""
    path = str(tmp_path / "shared.db")
    first = SharedStore(path, namespace="one")
    second = SharedStore(path, namespace="two")
    first.set("key", 1)
    assert second.get("key") is None


def test_values_visible_to_other_store_instances(tmp_path):
    """A second process opening the same file sees the writes."""
    path = str(tmp_path / "shared.db")
    SharedStore(path, namespace="group").save_unit(TemperatureUnit.FAHRENHEIT)
    assert SharedStore(path, namespace="group").load_unit() is TemperatureUnit.FAHRENHEIT


def test_write_many_deletes_none_values(store):
    """None in a multi-key write removes the key."""
    store.write_many({"a": 1, "b": 2})
    store.write_many({"a": None, "b": 3})
    assert store.get_many(["a", "b"]) == {"b": 3}


def test_write_many_rolls_back_on_error(store):
    """A failing write leaves nothing behind."""
    store.set("a", 1)
    with pytest.raises(TypeError):
        store.write_many({"a": 2, "b": object()})
    assert store.get("a") == 1
    assert store.get("b") is None


def test_location_round_trip(store):
    """Saved location comes back unchanged."""
    location = Location("Porto", "Portugal", 41.15, -8.61)
    store.save_location(location)
    assert store.load_location() == location


def test_missing_location(store):
    """Nothing saved yet."""
    assert store.load_location() is None


def test_corrupt_location_treated_as_absent(store):
    """Undecodable JSON means no location."""
    _corrupt(store, KEY_LOCATION, "{not json")
    assert store.load_location() is None


def test_location_with_wrong_shape_treated_as_absent(store):
    """Valid JSON with missing fields means no location."""
    store.set(KEY_LOCATION, {"name": "Nowhere"})
    assert store.load_location() is None


def test_unit_defaults_to_celsius(store):
    """No unit or an unknown one means Celsius."""
    assert store.load_unit() is TemperatureUnit.CELSIUS
    store.set(KEY_UNIT, "kelvin")
    assert store.load_unit() is TemperatureUnit.CELSIUS


def test_home_hours_default_and_round_trip(store):
    """Defaults to 08:00-20:00 and persists as HH:MM."""
    assert store.load_home_hours() == HomeHoursWindow(time(8, 0), time(20, 0))
    store.save_home_hours(HomeHoursWindow(time(7, 30), time(22, 0)))
    assert store.get(KEY_HOME_HOURS) == {"start": "07:30", "end": "22:00"}
    assert store.load_home_hours() == HomeHoursWindow(time(7, 30), time(22, 0))


def test_corrupt_home_hours_fall_back_to_defaults(store):
    """Bad stored values give the default window."""
    store.set(KEY_HOME_HOURS, {"start": "late", "end": "never"})
    assert store.load_home_hours() == HomeHoursWindow()


def test_snapshot_round_trip(store):
    """Every snapshot field survives persistence, including timezones."""
    original = _snapshot()
    version = store.save_snapshot(original, refreshed_at=1000.0)

    loaded = store.load_snapshot()
    assert loaded.current == original.current
    assert loaded.hourly == original.hourly
    assert loaded.optimal_window == original.optimal_window
    assert loaded.predicted_humidity == 58.0
    assert loaded.fetched_at == original.fetched_at
    assert loaded.version == version == 1
    assert loaded.hourly[0].timestamp.utcoffset() == timedelta(hours=1)
    assert store.last_refresh() == 1000.0


def test_snapshot_version_increments(store):
    """Each save bumps the version."""
    assert store.save_snapshot(_snapshot(), refreshed_at=1.0) == 1
    assert store.save_snapshot(_snapshot(), refreshed_at=2.0) == 2


def test_snapshot_without_window_clears_previous_window(store):
    """A fetch with no window must not leave the old window behind."""
    store.save_snapshot(_snapshot(window=True), refreshed_at=1.0)
    store.save_snapshot(_snapshot(window=False), refreshed_at=2.0)

    loaded = store.load_snapshot()
    assert loaded.optimal_window is None
    assert loaded.predicted_humidity is None
    assert store.get(KEY_WINDOW_START) is None


def test_no_snapshot_stored(store):
    """Fresh store has no snapshot."""
    assert store.load_snapshot() is None


def test_corrupt_hourly_drops_series_and_window(store):
    """The window is never shown without the series it came from."""
    store.save_snapshot(_snapshot(), refreshed_at=1.0)
    _corrupt(store, KEY_HOURLY, "[[[")

    loaded = store.load_snapshot()
    assert loaded.current.relative_humidity == 60.0
    assert loaded.hourly == []
    assert loaded.optimal_window is None


def test_corrupt_window_drops_series_and_window(store):
    """Bad window timestamps also drop the series."""
    store.save_snapshot(_snapshot(), refreshed_at=1.0)
    store.set(KEY_WINDOW_START, "not a date")

    loaded = store.load_snapshot()
    assert loaded.hourly == []
    assert loaded.optimal_window is None


@pytest.mark.parametrize("corrupt_version", ["v7", [1], {"n": 1}])
def test_corrupt_version_treated_as_absent(store, corrupt_version):
    """A bad version number does not hide an otherwise usable snapshot."""
    store.save_snapshot(_snapshot(), refreshed_at=1.0)
    store.set(KEY_VERSION, corrupt_version)

    loaded = store.load_snapshot()
    assert loaded.version == 0
    assert loaded.current.relative_humidity == 60.0
    assert loaded.optimal_window is not None


def test_corrupt_version_restarts_numbering(store):
    """The next save after a corrupt version starts again at 1."""
    store.save_snapshot(_snapshot(), refreshed_at=1.0)
    store.set(KEY_VERSION, "v7")
    assert store.save_snapshot(_snapshot(), refreshed_at=2.0) == 1
