"""Normalization of raw upstream payloads into the dashboard snapshot."""

from whoopdash.aggregators.snapshot import (
    ErrorSnapshot,
    RecoveryPoint,
    SleepPoint,
    Snapshot,
    WorkoutPoint,
    normalize,
    unwrap_records,
)

__all__ = [
    "ErrorSnapshot",
    "RecoveryPoint",
    "SleepPoint",
    "Snapshot",
    "WorkoutPoint",
    "normalize",
    "unwrap_records",
]
