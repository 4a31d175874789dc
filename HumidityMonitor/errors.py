"""Refresh outcomes reported to surfaces."""
from typing import Optional


class RefreshError(Exception):
    """Base class for everything ``WeatherService.refresh`` can raise."""
    pass


class CooldownActive(RefreshError):
    """Raised when an enforced refresh comes too soon after the last one."""

    def __init__(self, remaining_seconds: float):
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Please wait {remaining_seconds:.0f}s between refreshes")


class RateLimited(RefreshError):
    """Raised when the weather provider asks us to back off."""

    def __init__(self, retry_after_seconds: float):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited by provider, retry after {retry_after_seconds:.0f}s")


class UpstreamError(RefreshError):
    """Raised when the weather provider fails for any other reason."""

    def __init__(self, cause: Optional[BaseException]):
        self.cause = cause
        super().__init__(f"Weather provider failed: {cause}")


class InvalidInputError(ValueError):
    """Raised for user input that cannot be used (e.g. humidity above 100%)."""
    pass


class NoSavedLocation(RefreshError):
    """Raised when a surface refreshes before any location was picked."""

    def __init__(self):
        super().__init__("No location set")
