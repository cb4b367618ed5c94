"""Local file persistence shared by the token store and the snapshot writer."""

from whoopdash.storage.files import atomic_write_json
from whoopdash.storage.snapshot_file import SnapshotWriter

__all__ = ["SnapshotWriter", "atomic_write_json"]
