"""
snapshot.py - Snapshot Persistence

Serializes a domain ledger to a flat, self-describing text file and reads it
back at startup.

File layout (JSON Lines):
    line 1:  {"format": "ledger-engine-snapshot", "schema": "hotel", "version": 1}
    line 2+: one JSON object per record, each with a "type" field

Every save rewrites the whole file. The new content goes to a temporary file
in the same directory first and is then moved over the old one, so a reader
never sees a half-written snapshot.

Loading is best-effort: malformed record lines are skipped. A missing file
means "no saved state" and is not an error. A header from another schema or
a newer version is an error, since silently ignoring it would discard data.

Also provides read-only importers for the legacy flat files:
- read_legacy_bookings(): bookingId,customerName,roomNumber,status
- read_legacy_portfolio(): Java properties with balance/holdings/transactions
"""

from __future__ import annotations
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .core import (
    SNAPSHOT_FORMAT, SNAPSHOT_SCHEMA_VERSION,
    PersistenceError,
)
from .log import get_logger


logger = get_logger(__name__)

PathLike = Union[str, os.PathLike]
SnapshotRecord = Dict[str, Any]


class SnapshotStore:
    """
    Full-rewrite snapshot file for one domain ledger.

    Attributes:
        path: Location of the snapshot file
        last_skipped: Number of malformed lines skipped by the last load()
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.last_skipped = 0

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, schema: str, records: Iterable[SnapshotRecord]) -> None:
        """
        Rewrite the snapshot with a header and the given records.

        Args:
            schema: Domain name stored in the header (e.g. "hotel")
            records: JSON-serializable dicts, each with a "type" field

        Raises:
            PersistenceError: If the file cannot be written
        """
        header = {"format": SNAPSHOT_FORMAT, "schema": schema, "version": SNAPSHOT_SCHEMA_VERSION}
        lines = [json.dumps(header, sort_keys=True)]
        for record in records:
            lines.append(json.dumps(record, sort_keys=True))
        payload = "\n".join(lines) + "\n"

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistenceError(f"cannot write snapshot {self.path}: {exc}") from exc

    def load(self, schema: str) -> Optional[List[SnapshotRecord]]:
        """
        Read the records of a snapshot.

        Args:
            schema: Domain name the header must carry

        Returns:
            List of record dicts, or None if the file does not exist

        Raises:
            PersistenceError: If the file cannot be read, has no valid header,
                              or belongs to another schema or a newer version
        """
        self.last_skipped = 0
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"cannot read snapshot {self.path}: {exc}") from exc

        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            return []

        header = _parse_object(lines[0])
        if header is None or header.get("format") != SNAPSHOT_FORMAT:
            raise PersistenceError(f"{self.path} is not a ledger engine snapshot")
        if header.get("schema") != schema:
            raise PersistenceError(
                f"{self.path} holds a {header.get('schema')!r} snapshot, expected {schema!r}"
            )
        version = header.get("version")
        if not isinstance(version, int) or version > SNAPSHOT_SCHEMA_VERSION:
            raise PersistenceError(f"{self.path} has unsupported snapshot version {version!r}")

        records: List[SnapshotRecord] = []
        for number, line in enumerate(lines[1:], start=2):
            record = _parse_object(line)
            if record is None or not isinstance(record.get("type"), str):
                self.last_skipped += 1
                logger.debug("Skipping malformed snapshot line %d in %s", number, self.path)
                continue
            records.append(record)
        return records

    def __repr__(self) -> str:
        return f"SnapshotStore({str(self.path)!r})"


def _parse_object(line: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(line)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


# ============================================================================
# LEGACY FORMATS (import only)
# ============================================================================

def read_legacy_bookings(path: PathLike) -> Optional[List[Dict[str, str]]]:
    """
    Read the legacy hotel CSV, one booking per line.

    Each line is ``bookingId,customerName,roomNumber,status``. Lines with the
    wrong number of fields or a non-numeric room number are skipped.

    Returns:
        List of dicts with keys booking_id, customer_name, room_number, status;
        None if the file does not exist
    """
    path = Path(path)
    if not path.exists():
        return None
    rows: List[Dict[str, str]] = []
    try:
        with path.open(encoding="utf-8") as handle:
            for line in handle:
                parts = line.rstrip("\r\n").split(",")
                if len(parts) != 4 or not parts[2].strip().isdecimal():
                    continue
                rows.append({
                    "booking_id": parts[0].strip(),
                    "customer_name": parts[1].strip(),
                    "room_number": parts[2].strip(),
                    "status": parts[3].strip(),
                })
    except OSError as exc:
        raise PersistenceError(f"cannot read legacy bookings {path}: {exc}") from exc
    return rows


def read_legacy_portfolio(path: PathLike) -> Optional[Dict[str, Any]]:
    """
    Read the legacy portfolio properties file.

    Recognized keys:
        balance            -> str (decimal text)
        nextTransactionId  -> str
        holdings           -> "SYM:qty;SYM:qty;"
        transactions       -> "sym,type,qty,amount;..."

    Returns:
        Dict with balance, next_transaction_id, holdings (symbol -> qty str)
        and transactions (list of dicts); None if the file does not exist
    """
    path = Path(path)
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="latin-1")
    except OSError as exc:
        raise PersistenceError(f"cannot read legacy portfolio {path}: {exc}") from exc

    props = _parse_properties(text)
    holdings: Dict[str, str] = {}
    for entry in props.get("holdings", "").split(";"):
        parts = entry.split(":")
        if len(parts) == 2 and parts[0] and parts[1]:
            holdings[parts[0]] = parts[1]

    transactions: List[Dict[str, str]] = []
    for entry in props.get("transactions", "").split(";"):
        parts = entry.split(",")
        if len(parts) == 4 and all(parts):
            transactions.append({
                "symbol": parts[0], "side": parts[1], "quantity": parts[2], "amount": parts[3],
            })

    return {
        "balance": props.get("balance"),
        "next_transaction_id": props.get("nextTransactionId"),
        "holdings": holdings,
        "transactions": transactions,
    }


def _parse_properties(text: str) -> Dict[str, str]:
    """Minimal java.util.Properties reader: key=value lines, backslash escapes."""
    props: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        key_chars: List[str] = []
        value = ""
        i = 0
        while i < len(line):
            ch = line[i]
            if ch == "\\" and i + 1 < len(line):
                key_chars.append(line[i + 1])
                i += 2
                continue
            if ch in "=:":
                value = line[i + 1:]
                break
            key_chars.append(ch)
            i += 1
        props["".join(key_chars).strip()] = _unescape(value.strip())
    return props


def _unescape(value: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(value):
        if value[i] == "\\" and i + 1 < len(value):
            out.append(value[i + 1])
            i += 2
        else:
            out.append(value[i])
            i += 1
    return "".join(out)
