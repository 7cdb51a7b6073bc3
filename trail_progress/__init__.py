"""Trail progress tracker package."""

from .main import main
from .models import StatsSummary, TrailPoint
from .errors import ConfigurationError, TrailProgressError
from .services import ProgressService, ProgressServiceConfig, StatsReport

__all__ = [
    "main",
    "ConfigurationError",
    "ProgressService",
    "ProgressServiceConfig",
    "StatsReport",
    "StatsSummary",
    "TrailPoint",
    "TrailProgressError",
]
