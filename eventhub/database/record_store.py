"""
Shared behaviour for the in-memory, write-through record stores.
"""

import logging
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from eventhub.database.snapshot import SnapshotStore

logger = logging.getLogger(__name__)

E = TypeVar("E")


class RecordStore(Generic[E]):
    """
    Owns one authoritative, ordered list of entities.

    The list is loaded from the snapshot once at construction. Every
    mutating call holds the store lock and writes the full collection back
    before returning; if the write fails the in-memory change is undone
    and the StorageError propagates.

    Subclasses set `decode` to the entity's from_record constructor and
    `label` for log lines.
    """

    label = "records"

    def __init__(self, snapshot: SnapshotStore, decode: Callable[[Dict[str, Any]], E]):
        self._snapshot = snapshot
        self._lock = threading.RLock()
        self._items: List[E] = snapshot.load(decode)
        logger.info(f"[Store] {self.label}: {len(self._items)} loaded")

    # --- READS ---

    def find_all(self) -> List[E]:
        """Return a copy of the collection, in creation order."""
        return list(self._items)

    def find_by_id(self, record_id: str) -> Optional[E]:
        for item in self._items:
            if item.id == record_id:
                return item
        return None

    def count(self) -> int:
        return len(self._items)

    # --- WRITES ---

    def clear(self) -> None:
        """Empty the collection and persist the empty state."""
        with self._lock:
            previous = self._items
            self._items = []
            self._persist(lambda: setattr(self, "_items", previous))
            logger.info(f"[Store] {self.label}: cleared")

    def _index_of(self, record_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == record_id:
                return index
        return -1

    def _persist(self, rollback: Callable[[], None]) -> None:
        """Write the whole collection; undo the caller's change on failure."""
        try:
            self._snapshot.save([item.to_record() for item in self._items])
        except Exception:
            rollback()
            raise

    def _append(self, item: E) -> None:
        with self._lock:
            self._items.append(item)
            self._persist(lambda: self._items.remove(item))

    def _remove_at(self, index: int) -> E:
        with self._lock:
            item = self._items.pop(index)
            self._persist(lambda: self._items.insert(index, item))
            return item

    def _mutate(self, item: E, change: Callable[[E], Any]) -> Any:
        """
        Apply change to item in place and persist. item is restored if the
        change itself raises partway through or the write fails.
        """
        with self._lock:
            before = item.to_record()
            try:
                result = change(item)
            except Exception:
                item.restore(before)
                raise
            self._persist(lambda: item.restore(before))
            return result

    def _rewrite(
        self,
        change: Callable[[List[E]], Any],
        then: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """
        Apply change to the whole collection as one persisted write.

        change may add, drop or edit entities in the list it is given. If it
        raises or the write fails, the list and every entity in it are put
        back. then runs after the write, still under the lock; if it raises,
        the collection is put back and written again before re-raising.
        """
        with self._lock:
            items = list(self._items)
            records = [item.to_record() for item in items]

            def rollback() -> None:
                self._items = items
                for item, record in zip(items, records):
                    item.restore(record)

            working = list(items)
            try:
                result = change(working)
            except Exception:
                rollback()
                raise
            self._items = working
            self._persist(rollback)

            if then is not None:
                try:
                    then()
                except Exception:
                    rollback()
                    self._persist(lambda: None)
                    raise
            return result
