"""Fingerprint store: last known checksum of every tracked file.

The store is the only persisted state of the engine. It is read to decide
staleness and written by the run orchestrator after scripts succeed.
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from bakepipe._internal.canonical_json import write_canonical_json

from .errors import StateFileError
from .hash_utils import hash_file

logger = logging.getLogger(__name__)

STATE_FORMAT = "bakepipe.state"
STATE_VERSION = "1"
DEFAULT_STATE_FILE = ".bakepipe.state"


class FileState(str, Enum):
    """Current state of a file relative to its stored fingerprint."""
    FRESH = "fresh"
    NEW = "new"  # Never tracked
    MODIFIED = "modified"  # Checksum differs from the stored one
    DELETED = "deleted"  # Tracked before, missing now

    @property
    def is_stale(self) -> bool:
        return self is not FileState.FRESH


class FingerprintRecord(BaseModel):
    """Checksum of a tracked path at the time it was last produced or verified."""
    path: str
    checksum: str  # "sha256:<hex>"
    observed_at: str  # ISO 8601 (UTC) modification time

    model_config = ConfigDict(extra="forbid", frozen=True)


class StateFileModel(BaseModel):
    """On-disk layout of the fingerprint store."""
    format: str = STATE_FORMAT
    version: str = STATE_VERSION
    records: List[FingerprintRecord]  # Sorted by path

    model_config = ConfigDict(extra="forbid")


class FingerprintStore:
    """Table of path -> FingerprintRecord for one project root.

    Paths are relative to root. Only this class mutates records; reporting layers
    get a read-only view through ``records``.
    """

    def __init__(self, root: Union[str, Path], state_path: Union[str, Path, None] = None):
        self.root = Path(root)
        state_path = Path(state_path) if state_path is not None else Path(DEFAULT_STATE_FILE)
        self.state_path = state_path if state_path.is_absolute() else self.root / state_path
        self._records: Dict[str, FingerprintRecord] = {}

    @classmethod
    def load(cls, root: Union[str, Path], state_path: Union[str, Path, None] = None) -> "FingerprintStore":
        """Create a store and read the state file. A missing state file means an empty store."""
        store = cls(root, state_path)
        store._read()
        return store

    def _read(self) -> None:
        if not self.state_path.exists():
            logger.debug("No state file at %s; starting empty", self.state_path)
            self._records = {}
            return
        try:
            data = json.loads(self.state_path.read_text(encoding="utf-8"))
            state = StateFileModel(**data)
        except (json.JSONDecodeError, TypeError) as e:
            raise StateFileError(str(self.state_path), f"Invalid JSON: {e}") from e
        except ValidationError as e:
            raise StateFileError(str(self.state_path), str(e)) from e
        if state.format != STATE_FORMAT or state.version != STATE_VERSION:
            raise StateFileError(
                str(self.state_path),
                f"Unsupported state format {state.format!r} version {state.version!r}",
            )
        self._records = {record.path: record for record in state.records}
        logger.debug("Loaded %d fingerprints from %s", len(self._records), self.state_path)

    def save(self) -> None:
        """Write all records to the state file (canonical JSON, sorted by path)."""
        state = StateFileModel(records=[self._records[path] for path in sorted(self._records)])
        write_canonical_json(self.state_path, state.model_dump(mode="json"))
        logger.info("Saved %d fingerprints to %s", len(self._records), self.state_path)

    @property
    def records(self) -> Mapping[str, FingerprintRecord]:
        return MappingProxyType(self._records)

    def get(self, path: str) -> Optional[FingerprintRecord]:
        return self._records.get(path)

    def __contains__(self, path: str) -> bool:
        return path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def resolve(self, path: str) -> Path:
        return self.root / path

    def current_checksum(self, path: str) -> Optional[str]:
        """Checksum of the file as it is on disk now, or None if it does not exist."""
        file_path = self.resolve(path)
        if not file_path.is_file():
            return None
        return hash_file(file_path)

    def check(self, path: str) -> FileState:
        """Compare the file on disk with its stored fingerprint."""
        stored = self._records.get(path)
        current = self.current_checksum(path)
        if stored is None:
            return FileState.NEW
        if current is None:
            return FileState.DELETED
        if current != stored.checksum:
            return FileState.MODIFIED
        return FileState.FRESH

    def record(self, path: str) -> Optional[FingerprintRecord]:
        """Fingerprint the file as it is now and store the result.

        Returns None, leaving any previous record untouched, if the file does not exist.
        """
        file_path = self.resolve(path)
        if not file_path.is_file():
            return None
        mtime = file_path.stat().st_mtime
        fingerprint = FingerprintRecord(
            path=path,
            checksum=hash_file(file_path),
            observed_at=datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
        )
        self._records[path] = fingerprint
        return fingerprint

    def forget(self, path: str) -> bool:
        """Drop the record for path. Returns True if there was one."""
        return self._records.pop(path, None) is not None

    def reset(self, paths: Optional[Iterable[str]] = None) -> None:
        """Drop the records for paths, or every record if paths is None."""
        if paths is None:
            self._records.clear()
            return
        for path in paths:
            self.forget(path)
