"""
Snapshot persistence for the record stores.

Each collection lives in one JSON file holding the full, ordered list of
entity records. Stores only depend on the SnapshotStore interface, so the
whole-file rewrite can be swapped for an append-only or batched adapter
without changing any store call.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, TypeVar

from eventhub.core.exceptions import ConfigurationError, SnapshotCorruptError, StorageError
from eventhub.core.timeutil import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

CORRUPT_POLICIES = ("fail", "quarantine", "ignore")


class SnapshotStore(ABC):
    """Interface for loading and saving one entity collection."""

    @abstractmethod
    def load(self, decode: Callable[[Dict[str, Any]], T]) -> List[T]:
        """Return the stored collection, each record passed through decode."""
        ...

    @abstractmethod
    def save(self, records: List[Dict[str, Any]]) -> None:
        """Durably replace the stored collection with records."""
        ...


class JsonFileSnapshot(SnapshotStore):
    """
    Whole-collection JSON snapshot with atomic replace on save.

    Args:
        path: Snapshot file location. The parent directory is created.
        on_corrupt: What to do when the file exists but cannot be loaded:
            'fail' raises SnapshotCorruptError, 'quarantine' moves the file
            aside and starts empty, 'ignore' starts empty and leaves the
            file to be overwritten by the next save.
    """

    def __init__(self, path: os.PathLike, on_corrupt: str = "quarantine"):
        if on_corrupt not in CORRUPT_POLICIES:
            raise ConfigurationError(
                f"on_corrupt must be one of: {', '.join(CORRUPT_POLICIES)}"
            )
        self.path = Path(path)
        self.on_corrupt = on_corrupt
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self, decode: Callable[[Dict[str, Any]], T]) -> List[T]:
        if not self.path.exists():
            logger.info(f"[Snapshot] No snapshot at {self.path}, starting empty")
            return []

        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, list):
                raise ValueError(f"expected a JSON array, got {type(raw).__name__}")
            items = [decode(record) for record in raw]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            # json.JSONDecodeError is a ValueError
            return self._handle_corrupt(e)

        logger.info(f"[Snapshot] Loaded {len(items)} records from {self.path}")
        return items

    def save(self, records: List[Dict[str, Any]]) -> None:
        # Encode up front so an unserializable record never leaves a temp file.
        try:
            data = json.dumps(records, ensure_ascii=False, indent=2).encode("utf-8")
        except (TypeError, ValueError) as e:
            # UnicodeEncodeError is a ValueError
            raise StorageError(f"Could not encode snapshot {self.path}: {e}") from e

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StorageError(f"Could not write snapshot {self.path}: {e}") from e

        logger.debug(f"[Snapshot] Saved {len(records)} records to {self.path}")

    def _handle_corrupt(self, error: Exception) -> list:
        if self.on_corrupt == "fail":
            logger.error(f"[Snapshot] Corrupt snapshot {self.path}: {error}")
            raise SnapshotCorruptError(
                f"Snapshot {self.path} is corrupt ({error}); refusing to start"
            ) from error

        if self.on_corrupt == "quarantine":
            stamp = utc_now().strftime("%Y%m%dT%H%M%S%fZ")
            target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
            os.replace(self.path, target)
            logger.warning(
                f"[Snapshot] Corrupt snapshot {self.path} ({error}); "
                f"moved to {target}, starting empty"
            )
            return []

        logger.error(
            f"[Snapshot] Corrupt snapshot {self.path} ({error}); ignoring it and "
            f"starting empty, the file will be overwritten on the next write"
        )
        return []
