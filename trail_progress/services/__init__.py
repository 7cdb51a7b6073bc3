"""Service layer package.

Exports the orchestration service consumed by the CLI and report layers.
"""

from .progress_service import (
    Location,
    PointsReport,
    ProgressService,
    ProgressServiceConfig,
    StatsReport,
)

__all__ = [
    "Location",
    "PointsReport",
    "ProgressService",
    "ProgressServiceConfig",
    "StatsReport",
]
