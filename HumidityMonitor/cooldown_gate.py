"""Refresh cooldown policy shared by every surface."""
import logging
import time
from typing import Callable

from config import REFRESH_COOLDOWN_SECONDS
from errors import CooldownActive
from shared_store import SharedStore


class RefreshCooldownGate:
    """
    Decides whether a refresh may hit the provider right now.

    The last-refresh time is always read from the shared store because another
    surface may have refreshed more recently than this process knows.
    Automatic triggers enforce the gate; explicit user actions such as picking
    a new location may bypass it.
    """

    def __init__(
        self,
        store: SharedStore,
        min_interval_seconds: float = REFRESH_COOLDOWN_SECONDS,
        time_func: Callable[[], float] = time.time,
    ):
        self.store = store
        self.min_interval_seconds = min_interval_seconds
        self.time_func = time_func

    def seconds_since_last_refresh(self) -> float:
        last = self.store.last_refresh()
        if last is None:
            return float("inf")
        return max(0.0, self.time_func() - last)

    def remaining_seconds(self) -> float:
        """Seconds until an enforced refresh is allowed (0 when allowed)."""
        return max(0.0, self.min_interval_seconds - self.seconds_since_last_refresh())

    def allows(self, enforce: bool = True) -> bool:
        return not enforce or self.remaining_seconds() <= 0

    def check(self, enforce: bool = True) -> None:
        """
        Raises:
            CooldownActive: If ``enforce`` is set and the cooldown has not elapsed
        """
        if not enforce:
            return
        remaining = self.remaining_seconds()
        if remaining > 0:
            logging.info(f"Refresh refused, cooldown active ({remaining:.1f}s remaining)")
            raise CooldownActive(remaining)

    def is_due(self, interval_seconds: float) -> bool:
        """Whether a periodic trigger with this interval should fetch now."""
        return self.seconds_since_last_refresh() >= max(interval_seconds, self.min_interval_seconds)

    def record_refresh(self) -> float:
        """Timestamp to persist alongside a freshly fetched snapshot."""
        return self.time_func()
