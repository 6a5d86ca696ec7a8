"""
JSON File Storage Implementation

DESIGN DECISION: A single local JSON file is the durable backend because:
1. The app is single-user and single-writer
2. No database setup required
3. The user can open and back up the file directly

TRADEOFFS:
- The whole file is rewritten on every commit (fine for personal data volumes)
- Atomicity comes from writing a temp file and renaming it over the target

The implementation follows the abstract interface, so we can swap
to SQLite later without changing the store or the import logic.
"""

from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from passbook.config import get_settings
from passbook.models.account import StoreSnapshot
from passbook.utils import atomic_write_text
from passbook.services.storage.interface import (
    RecordStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class JsonFileRecordStorage(RecordStorageInterface):
    """
    Stores the snapshot as one JSON document.

    Publish rule:
    1. Write to <path>.tmp in the same directory
    2. Flush + fsync
    3. os.replace temp -> final (the publish boundary)
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else get_settings().storage.data_path

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> StoreSnapshot:
        """Load the snapshot; a missing file is an empty store."""
        if not self._path.exists():
            logger.info("record_file_missing", path=str(self._path))
            return StoreSnapshot()

        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = handle.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {self._path}: {e}") from e

        try:
            return StoreSnapshot.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Record file is corrupted: {self._path}: {e}") from e

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_atomic(self, payload: str) -> None:
        atomic_write_text(self._path, payload)

    async def save(self, snapshot: StoreSnapshot) -> bool:
        """Atomically replace the record file."""
        payload = snapshot.model_dump_json(indent=2)
        try:
            self._write_atomic(payload)
        except OSError as e:
            raise StorageError(f"Failed to save records to {self._path}: {e}") from e

        logger.debug(
            "record_file_saved",
            path=str(self._path),
            accounts=len(snapshot.accounts),
            tags=len(snapshot.tags),
            associations=len(snapshot.associations),
        )
        return True
