"""
store.py - In-memory Record Store

A RecordStore holds one collection of domain records (rooms, bookings,
stocks, trades, students) keyed by a caller-supplied key function.

Lookups are linear scans over an insertion-ordered list. Collections in this
engine hold tens of records, so there is no index to keep consistent.

The store does no locking of its own; the owning LedgerEngine serializes
every access under its lock.
"""

from __future__ import annotations
from typing import Any, Callable, Hashable, Iterator, List, Optional, Tuple

from .core import DuplicateId, NotFound


KeyFunc = Callable[[Any], Hashable]
Predicate = Callable[[Any], bool]


class RecordStore:
    """
    Insertion-ordered collection of records with unique keys.

    Example:
        rooms = RecordStore("room", key=lambda room: room.number)
        rooms.add(Room(101, RoomType.STANDARD))
        rooms.get(101)
        rooms.find(room_type=RoomType.STANDARD, available=True)
    """

    def __init__(self, label: str, key: KeyFunc):
        """
        Create an empty store.

        Args:
            label: Human-readable record name used in error messages
            key: Function returning the unique identifier of a record
        """
        self.label = label
        self._key = key
        self._records: List[Any] = []

    # ========================================================================
    # READS
    # ========================================================================

    def key_of(self, record: Any) -> Hashable:
        return self._key(record)

    def list_all(self) -> Tuple[Any, ...]:
        """Return every record in insertion order."""
        return tuple(self._records)

    def find(self, predicate: Optional[Predicate] = None, **criteria: Any) -> Tuple[Any, ...]:
        """
        Return records matching a predicate and/or attribute equality criteria.

        Criteria whose value is None are ignored, so callers can pass optional
        filters straight through.

        Args:
            predicate: Optional callable that must return True for a match
            **criteria: attribute=value pairs that must all be equal

        Returns:
            Matching records in insertion order
        """
        active = {name: value for name, value in criteria.items() if value is not None}
        matches = []
        for record in self._records:
            if any(getattr(record, name) != value for name, value in active.items()):
                continue
            if predicate is not None and not predicate(record):
                continue
            matches.append(record)
        return tuple(matches)

    def get(self, record_id: Hashable) -> Any:
        """
        Return the record with the given identifier.

        Raises:
            NotFound: If no record has that identifier
        """
        index = self._index_of(record_id)
        if index is None:
            raise NotFound(f"{self.label} {record_id} not found")
        return self._records[index]

    def contains(self, record_id: Hashable) -> bool:
        return self._index_of(record_id) is not None

    def __contains__(self, record_id: Hashable) -> bool:
        return self.contains(record_id)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Any]:
        return iter(tuple(self._records))

    # ========================================================================
    # WRITES
    # ========================================================================

    def add(self, record: Any) -> Any:
        """
        Append a new record.

        Raises:
            DuplicateId: If a record with the same identifier exists
        """
        record_id = self._key(record)
        if self._index_of(record_id) is not None:
            raise DuplicateId(f"{self.label} {record_id} already exists")
        self._records.append(record)
        return record

    def replace(self, record: Any) -> Any:
        """
        Swap in a new version of an existing record, keeping its position.

        Used for frozen records whose status changes (e.g. a cancelled booking).

        Raises:
            NotFound: If no record has the same identifier
        """
        record_id = self._key(record)
        index = self._index_of(record_id)
        if index is None:
            raise NotFound(f"{self.label} {record_id} not found")
        self._records[index] = record
        return record

    def remove(self, record_id: Hashable) -> Any:
        """
        Remove and return a record.

        Raises:
            NotFound: If no record has that identifier
        """
        index = self._index_of(record_id)
        if index is None:
            raise NotFound(f"{self.label} {record_id} not found")
        return self._records.pop(index)

    def clear(self) -> None:
        self._records.clear()

    def _index_of(self, record_id: Hashable) -> Optional[int]:
        for index, record in enumerate(self._records):
            if self._key(record) == record_id:
                return index
        return None

    def __repr__(self) -> str:
        return f"RecordStore({self.label}, {len(self._records)} records)"
