"""Writer for the shared ``all-data.json`` snapshot file."""

from datetime import datetime
from pathlib import Path

import structlog

from whoopdash.aggregators.snapshot import ErrorSnapshot, Snapshot, error_snapshot
from whoopdash.storage.files import atomic_write_json

logger = structlog.get_logger()


class SnapshotWriter:
    """Replaces the dashboard's data file in one atomic step.

    The file always holds either a full Snapshot or an ErrorSnapshot, both
    with the recovery/sleep/workout/cycle arrays present.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def write(self, snapshot: Snapshot | ErrorSnapshot) -> None:
        atomic_write_json(self.path, snapshot.to_json_dict())
        if isinstance(snapshot, ErrorSnapshot):
            logger.warning("Error snapshot written", path=str(self.path))
        else:
            logger.info(
                "Snapshot written",
                path=str(self.path),
                recovery=len(snapshot.recovery),
                sleep=len(snapshot.sleep),
                workout=len(snapshot.workout),
                cycle=len(snapshot.cycle),
            )

    def write_error(self, message: str, now: datetime | None = None) -> ErrorSnapshot:
        """Write the minimal error document the dashboard can still render."""
        snapshot = error_snapshot(message, now)
        self.write(snapshot)
        return snapshot
