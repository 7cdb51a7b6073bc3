"""Central error types used across the application."""

from __future__ import annotations


class TrailProgressError(RuntimeError):
    """Base error for trail progress failures."""


class ConfigurationError(TrailProgressError):
    """Raised when required settings are missing or invalid.

    This is the only error that is allowed to fail a request; everything else
    degrades to a partial response.
    """

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class TrailDataError(TrailProgressError):
    """Raised when the reference trail polyline cannot be loaded or built."""


class StorageError(TrailProgressError):
    """Raised when the point store cannot be read or written."""


class WeatherError(TrailProgressError):
    """Raised when the forecast API is unreachable or returns bad data."""


__all__ = [
    "ConfigurationError",
    "StorageError",
    "TrailDataError",
    "TrailProgressError",
    "WeatherError",
]
