"""
ledger.py - Mutation Ledger base class

LedgerEngine is the stateful base shared by every domain ledger
(HotelLedger, TradingLedger, Gradebook). It is the only place where
mutations are applied, which keeps every state change controlled and
logged.

Key responsibilities:
    - Runs each mutation as validate -> apply -> snapshot, under one lock
    - Converts validation failures into REJECTED MutationResults
    - Turns snapshot write failures into warnings without rolling back
    - Dispatches the front-end API: perform(kind, ...) and aggregate(kind, ...)
    - Notifies subscribed listeners after every applied mutation

Subclasses provide the domain state and implement:
    list_resources(), search(**criteria), _reset_state(),
    _snapshot_records(), _restore_records(records)
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import inspect
import logging
import os
import threading

from .core import (
    MutationResult,
    ValidationError, MalformedInput, PersistenceError,
)
from .log import get_logger
from .snapshot import SnapshotStore, SnapshotRecord


logger = get_logger(__name__)

Listener = Callable[[MutationResult], None]


def synchronized(method):
    """Run a LedgerEngine method while holding the engine lock."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class LedgerEngine:
    """
    Base class for in-memory domain ledgers with write-through snapshots.

    Every mutation follows the same protocol:
        1. Validate all preconditions; raise ValidationError before touching state
        2. Apply the change and build the transaction record
        3. Rewrite the snapshot (if a snapshot path was given)

    Steps 1-3 run under a re-entrant lock that every public reader also takes,
    so other threads (e.g. the market clock) only ever see completed mutations.

    Thread Safety:
        Safe to share between the caller's thread and the simulation clock.
        Listener callbacks run on the mutating thread after the lock is released.

    Example:
        hotel = HotelLedger("front-desk", snapshot_path="hotel_data.jsonl")
        result = hotel.perform("book", customer=..., room_type="STANDARD",
                               check_in="01-03-2025", check_out="03-03-2025")
        if not result.ok:
            print(result.error_kind, result.error)
    """

    # Name written to the snapshot header; set by each subclass.
    schema: str = ""

    def __init__(
        self,
        name: str,
        snapshot_path: Optional[os.PathLike] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger engine.

        Args:
            name: Ledger identifier used in log messages
            snapshot_path: File for write-through snapshots (None = in-memory only)
            verbose: Log applied and rejected mutations at INFO instead of DEBUG
        """
        self.name = name
        self.verbose = verbose
        self.snapshot: Optional[SnapshotStore] = (
            SnapshotStore(snapshot_path) if snapshot_path is not None else None
        )
        self.last_load_skipped = 0
        self._lock = threading.RLock()
        self._revision = 0
        self._listeners: List[Listener] = []
        self._mutations: Dict[str, Callable[..., Any]] = {}
        self._aggregates: Dict[str, Callable[..., Any]] = {}

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_mutation(self, kind: str, handler: Callable[..., Any]) -> None:
        """
        Expose a mutation under a name usable with perform().

        The handler validates, applies, and returns the transaction record.
        It must raise ValidationError before changing any state.
        """
        if kind in self._mutations:
            raise ValueError(f"Mutation {kind} already registered")
        self._mutations[kind] = handler

    def register_aggregate(self, kind: str, func: Callable[..., Any]) -> None:
        """Expose a read-only derived value under a name usable with aggregate()."""
        if kind in self._aggregates:
            raise ValueError(f"Aggregate {kind} already registered")
        self._aggregates[kind] = func

    @property
    def mutation_kinds(self) -> Tuple[str, ...]:
        return tuple(sorted(self._mutations))

    @property
    def aggregate_kinds(self) -> Tuple[str, ...]:
        return tuple(sorted(self._aggregates))

    @property
    def revision(self) -> int:
        """Counter bumped by every applied mutation; lets views detect staleness."""
        return self._revision

    # ========================================================================
    # FRONT-END API
    # ========================================================================

    def list_resources(self) -> Tuple[Any, ...]:
        raise NotImplementedError

    def search(self, **criteria: Any) -> Tuple[Any, ...]:
        raise NotImplementedError

    def perform(self, kind: str, **params: Any) -> MutationResult:
        """
        Run a registered mutation by name.

        Never raises for bad input: unknown kinds and parameters that do not
        fit the mutation's signature are rejected with MalformedInput.

        Args:
            kind: Mutation name (see mutation_kinds)
            **params: Keyword arguments for the mutation

        Returns:
            MutationResult (APPLIED with the record, or REJECTED with the error)
        """
        handler = self._mutations.get(kind)
        if handler is None:
            return self._reject(kind, MalformedInput(f"unknown mutation {kind!r}"))
        try:
            inspect.signature(handler).bind(**params)
        except TypeError as exc:
            return self._reject(kind, MalformedInput(f"bad parameters for {kind}: {exc}"))
        return self._mutate(kind, handler, **params)

    def aggregate(self, kind: str, **params: Any) -> Any:
        """
        Compute a registered aggregate view by name.

        Raises:
            MalformedInput: If the aggregate is unknown
        """
        func = self._aggregates.get(kind)
        if func is None:
            raise MalformedInput(f"unknown aggregate {kind!r}")
        with self._lock:
            return func(**params)

    def subscribe(self, listener: Listener) -> Listener:
        """Call listener(result) after every applied mutation. Returns the listener."""
        with self._lock:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def load_snapshot(self) -> bool:
        """
        Replace in-memory state with the saved snapshot.

        A missing file resets to the fresh state. Malformed lines and records
        are skipped; their count is kept in last_load_skipped.

        Returns:
            True if a snapshot file was read, False if none exists

        Raises:
            PersistenceError: If the file is unreadable or from another schema
        """
        if self.snapshot is None:
            return False
        with self._lock:
            records = self.snapshot.load(self.schema)
            self._reset_state()
            self._revision += 1
            if records is None:
                self.last_load_skipped = 0
                logger.debug("%s: no snapshot at %s, starting fresh", self.name, self.snapshot.path)
                return False
            skipped = self._restore_records(records)
            self.last_load_skipped = self.snapshot.last_skipped + skipped
            self._log(
                "%s: loaded %d records from %s (%d skipped)",
                self.name, len(records) - skipped, self.snapshot.path, self.last_load_skipped,
            )
            return True

    def save_snapshot(self) -> None:
        """
        Write the snapshot now.

        Unlike the write-through after a mutation, an explicit save raises.

        Raises:
            PersistenceError: If the file cannot be written
        """
        if self.snapshot is None:
            return
        with self._lock:
            self.snapshot.save(self.schema, self._snapshot_records())

    # ========================================================================
    # SUBCLASS HOOKS
    # ========================================================================

    def _reset_state(self) -> None:
        """Return domain state to its fresh, just-seeded form."""
        raise NotImplementedError

    def _snapshot_records(self) -> Iterable[SnapshotRecord]:
        raise NotImplementedError

    def _restore_records(self, records: List[SnapshotRecord]) -> int:
        """Rebuild domain state from snapshot records. Returns the number skipped."""
        raise NotImplementedError

    def _open(self, autoload: bool) -> None:
        """Finish construction: load the snapshot if requested."""
        if autoload and self.snapshot is not None:
            self.load_snapshot()

    # ========================================================================
    # MUTATION PROTOCOL
    # ========================================================================

    def _mutate(
        self,
        kind: str,
        apply: Callable[..., Any],
        *args: Any,
        persist: bool = True,
        **kwargs: Any,
    ) -> MutationResult:
        """
        Validate and apply one mutation as an indivisible step.

        Args:
            kind: Operation name for the result and the log
            apply: Callable that validates, applies, and returns the record
            persist: Rewrite the snapshot after applying (default: True)

        Returns:
            MutationResult
        """
        with self._lock:
            try:
                record = apply(*args, **kwargs)
            except ValidationError as exc:
                return self._reject(kind, exc)
            self._revision += 1
            warnings = self._write_through() if persist else ()
            result = MutationResult.applied(kind, record, warnings)
            self._log("%s: APPLIED %s -> %r", self.name, kind, record)
        self._notify(result)
        return result

    def _reject(self, kind: str, error: ValidationError) -> MutationResult:
        self._log("%s: REJECTED %s (%s): %s", self.name, kind, error.kind.value, error)
        return MutationResult.rejected(kind, error)

    def _write_through(self) -> Tuple[str, ...]:
        if self.snapshot is None:
            return ()
        try:
            self.snapshot.save(self.schema, self._snapshot_records())
        except PersistenceError as exc:
            logger.warning("%s: snapshot write failed, keeping in-memory state: %s", self.name, exc)
            return (str(exc),)
        return ()

    def _notify(self, result: MutationResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("%s: listener %r failed", self.name, listener)

    def _log(self, message: str, *args: Any) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message, *args)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, revision={self._revision})"
