"""Place search: suggestion completion and coordinate lookup."""
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import requests

from config import OPEN_METEO_GEOCODING_URL

MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class PlaceSuggestion:
    title: str
    subtitle: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PlaceSearchError(Exception):
    """Exception raised when a place search provider fails."""
    pass


class PlaceSearchProvider(ABC):
    """Abstract base class for place autocomplete/geocoding services."""

    @abstractmethod
    def complete(self, query: str) -> List[PlaceSuggestion]:
        """Suggestions matching a partially typed query."""
        pass

    @abstractmethod
    def resolve(self, suggestion: PlaceSuggestion) -> Tuple[float, float]:
        """
        Coordinates for a suggestion, looking them up if needed.

        Raises:
            PlaceSearchError: If no coordinate can be found
        """
        pass


class OpenMeteoGeocoder(PlaceSearchProvider):
    """Place search backed by the Open-Meteo geocoding API."""

    def __init__(
        self,
        base_url: str = OPEN_METEO_GEOCODING_URL,
        timeout: float = 10,
        language: str = "en",
        count: int = 10,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.language = language
        self.count = count

    def complete(self, query: str) -> List[PlaceSuggestion]:
        query = query.strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        params = {"name": query, "count": self.count, "language": self.language, "format": "json"}
        try:
            logging.debug(f"Geocoding request: {query!r}")
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            if not response.ok:
                raise PlaceSearchError(f"HTTP {response.status_code}: {response.text[:200]}")
            data = response.json()
        except ValueError as e:
            raise PlaceSearchError(f"Failed to parse response: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlaceSearchError(f"Network error: {e}") from e

        suggestions = []
        for item in data.get("results") or []:
            try:
                suggestions.append(PlaceSuggestion(
                    title=item["name"],
                    subtitle=", ".join(part for part in (item.get("admin1"), item.get("country")) if part),
                    latitude=float(item["latitude"]),
                    longitude=float(item["longitude"]),
                ))
            except (KeyError, TypeError, ValueError):
                logging.debug(f"Skipping malformed geocoding result: {item}")
        return suggestions

    def resolve(self, suggestion: PlaceSuggestion) -> Tuple[float, float]:
        if suggestion.latitude is not None and suggestion.longitude is not None:
            return suggestion.latitude, suggestion.longitude

        for candidate in self.complete(suggestion.title):
            if candidate.subtitle == suggestion.subtitle or not suggestion.subtitle:
                return candidate.latitude, candidate.longitude
        raise PlaceSearchError(f"No coordinates found for {suggestion.title!r}")


SuggestionListener = Callable[[List[PlaceSuggestion]], None]


class PlaceCompleter:
    """
    Pushes suggestion lists to listeners as the user types.

    Each new query cancels the one still pending. Results of a query that was
    superseded while running are dropped instead of published. Listeners run
    on the worker thread while the completer lock is held, so a newer query
    cannot start between the generation check and the publish.
    """

    def __init__(self, provider: PlaceSearchProvider, executor: Optional[ThreadPoolExecutor] = None):
        self.provider = provider
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="place-search")
        self._listeners: List[SuggestionListener] = []
        self._lock = threading.RLock()
        self._generation = 0
        self._pending: Optional[Future] = None

    def subscribe(self, listener: SuggestionListener) -> None:
        self._listeners.append(listener)

    def update_query(self, text: str) -> Future:
        """Start completing ``text``, superseding any earlier query."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._pending is not None:
                self._pending.cancel()
            self._pending = self._executor.submit(self._complete, generation, text)
            return self._pending

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

    def close(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=False)

    def _complete(self, generation: int, text: str) -> List[PlaceSuggestion]:
        try:
            suggestions = self.provider.complete(text)
        except PlaceSearchError as e:
            logging.warning(f"Autocomplete error: {e}")
            suggestions = []

        with self._lock:
            if generation != self._generation:
                logging.debug(f"Dropping suggestions for superseded query {text!r}")
                return suggestions
            for listener in list(self._listeners):
                listener(suggestions)
        return suggestions
