"""File-backed store for the single token record."""

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from whoopdash.auth.tokens import TokenRecord
from whoopdash.storage.files import atomic_write_json

logger = structlog.get_logger()


class TokenStore:
    """Persists one TokenRecord as a JSON file.

    Single writer only; the pipeline runs as one batch process at a time.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> TokenRecord | None:
        """Return the stored record, or None when nothing usable is stored."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return TokenRecord.model_validate(data)
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.error("Token file is unreadable", path=str(self.path), error=type(e).__name__)
            return None

    def save(self, record: TokenRecord) -> None:
        """Persist ``record``, replacing whatever was stored before."""
        atomic_write_json(self.path, record.model_dump(mode="json"), mode=0o600)
        logger.info("Token record saved", path=str(self.path), expires_at=record.expires_at.isoformat())

    def delete(self) -> bool:
        """Remove the token file. Returns False if there was nothing to remove."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info("Token record deleted", path=str(self.path))
        return True
