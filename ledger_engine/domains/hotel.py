"""
hotel.py - Hotel booking ledger

Rooms are seeded at startup and never deleted. Bookings reference one room
and one customer; their only mutable field is the status, which moves one
way from Confirmed to Cancelled.

Availability is interval based: a room is free for [check_in, check_out)
when no confirmed booking for it overlaps that range. Each room also keeps
an ``available`` flag that is False while the room has any confirmed
booking, which is what a simple room list shows.

Pricing:
    nights = (check_out - check_in).days
    amount = nights x room_type.base_price x (1 + HOTEL_TAX_RATE)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import os

from ..aggregates import occupancy
from ..config import Settings, get_settings
from ..core import (
    HOTEL_TAX_RATE,
    MutationResult,
    ValidationError, NotFound, Unavailable, InvalidRange, InvalidState, MalformedInput,
    apply_rate, round_money,
)
from ..ledger import LedgerEngine, synchronized
from ..parsing import parse_date, parse_int, parse_name, parse_positive_int
from ..snapshot import SnapshotRecord, read_legacy_bookings
from ..store import RecordStore


# ============================================================================
# DATA MODEL
# ============================================================================

class RoomType(Enum):
    """Room categories with their nightly base price (in rupees) and features."""
    STANDARD = ("Standard", 2500, "AC, Double Bed, TV, WiFi")
    DELUXE = ("Deluxe", 4000, "AC, King Bed, City View")
    SUITE = ("Suite", 6000, "AC, Living Area, Kitchenette")

    def __init__(self, label: str, base_price: int, features: str):
        self.label = label
        self.base_price = Decimal(base_price)
        self.features = features

    @classmethod
    def parse(cls, value: Union[RoomType, str]) -> RoomType:
        """Accept a RoomType, its name ("DELUXE") or its label ("Deluxe")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            for room_type in cls:
                if key in (room_type.name, room_type.label.upper()):
                    return room_type
        raise MalformedInput(f"unknown room type {value!r}")


class BookingStatus(Enum):
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


@dataclass
class Room:
    number: int
    room_type: RoomType
    available: bool = True


@dataclass(frozen=True, slots=True)
class Customer:
    name: str
    email: str = ""
    phone: str = ""
    id_number: str = ""

    @classmethod
    def coerce(cls, value: Union[Customer, Mapping[str, Any], str]) -> Customer:
        """
        Build a Customer from a Customer, a mapping of its fields, or a bare name.

        Raises:
            MalformedInput: If the name is empty or the value has the wrong shape
        """
        if isinstance(value, Customer):
            customer = value
        elif isinstance(value, str):
            customer = cls(name=value)
        elif isinstance(value, Mapping):
            unknown = set(value) - {"name", "email", "phone", "id_number"}
            if unknown:
                raise MalformedInput(f"unknown customer fields: {sorted(unknown)}")
            if "name" not in value:
                raise MalformedInput("customer name is required")
            for key, item in value.items():
                if not isinstance(item, str):
                    raise MalformedInput(f"customer {key}: expected text, got {item!r}")
            customer = cls(**{key: item.strip() for key, item in value.items()})
        else:
            raise MalformedInput(f"customer: expected details, got {value!r}")
        return replace(customer, name=parse_name(customer.name, "customer name"))

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "email": self.email, "phone": self.phone, "id_number": self.id_number}


@dataclass(frozen=True, slots=True)
class Booking:
    """
    A reservation of one room for a date range.

    Attributes:
        booking_id: Unique id ("BK0001", ...)
        customer: Who booked
        room_number: Booked room
        check_in: First night (None only for bookings imported without dates)
        check_out: Departure day, strictly after check_in
        persons: Number of guests
        nights: Whole nights between check-in and check-out
        amount: Tax-inclusive total, fixed at booking time
        status: CONFIRMED or CANCELLED
    """
    booking_id: str
    customer: Customer
    room_number: int
    check_in: Optional[date]
    check_out: Optional[date]
    persons: int
    nights: int
    amount: Decimal
    status: BookingStatus = BookingStatus.CONFIRMED

    @property
    def is_open(self) -> bool:
        return self.status is BookingStatus.CONFIRMED

    def overlaps(self, check_in: date, check_out: date) -> bool:
        """
        True if this booking holds its room for any night of [check_in, check_out).

        Cancelled bookings hold nothing. Bookings without dates hold every night.
        """
        if not self.is_open:
            return False
        if self.check_in is None or self.check_out is None:
            return True
        return self.check_in < check_out and check_in < self.check_out


@dataclass(frozen=True, slots=True)
class Quote:
    """Price breakdown for a stay, before any room is committed."""
    room_type: RoomType
    check_in: date
    check_out: date
    nights: int
    nightly_rate: Decimal
    base: Decimal
    tax: Decimal
    total: Decimal


# Seed rooms: (number, type)
DEFAULT_ROOMS: Tuple[Tuple[int, RoomType], ...] = (
    (101, RoomType.STANDARD),
    (102, RoomType.STANDARD),
    (103, RoomType.STANDARD),
    (201, RoomType.DELUXE),
    (202, RoomType.DELUXE),
    (301, RoomType.SUITE),
)


def parse_stay(check_in: Any, check_out: Any) -> Tuple[date, date]:
    """
    Parse a stay's dates.

    Raises:
        MalformedInput: If a date cannot be parsed
        InvalidRange: If check-out is not strictly after check-in
    """
    check_in = parse_date(check_in, "check_in")
    check_out = parse_date(check_out, "check_out")
    if check_out <= check_in:
        raise InvalidRange(f"Check-out {check_out} must be after check-in {check_in}")
    return check_in, check_out


def compute_quote(room_type: Union[RoomType, str], check_in: Any, check_out: Any) -> Quote:
    """
    Price a stay.

    Raises:
        MalformedInput: If the type or a date cannot be parsed
        InvalidRange: If check-out is not strictly after check-in
    """
    room_type = RoomType.parse(room_type)
    check_in, check_out = parse_stay(check_in, check_out)
    nights = (check_out - check_in).days
    base = round_money(room_type.base_price * nights)
    total = apply_rate(base, HOTEL_TAX_RATE)
    return Quote(
        room_type=room_type,
        check_in=check_in,
        check_out=check_out,
        nights=nights,
        nightly_rate=round_money(room_type.base_price),
        base=base,
        tax=total - base,
        total=total,
    )


# ============================================================================
# LEDGER
# ============================================================================

class HotelLedger(LedgerEngine):
    """
    Booking ledger for a small hotel.

    Mutations (also reachable through perform()):
        book(customer, room_type, check_in, check_out, persons=1, room_number=None)
        cancel(booking_id)
        import_legacy(path)

    Aggregates (also reachable through aggregate()):
        occupancy(), revenue(), quote(room_type, check_in, check_out)

    Example:
        hotel = HotelLedger(snapshot_path="hotel_data.jsonl")
        result = hotel.book({"name": "Asha", "email": "asha@example.com"},
                            "Standard", "01-03-2025", "03-03-2025")
        result.record.amount  # Decimal("5900.00")
    """

    schema = "hotel"

    def __init__(
        self,
        name: str = "hotel",
        snapshot_path: Optional[os.PathLike] = None,
        rooms: Sequence[Tuple[int, RoomType]] = DEFAULT_ROOMS,
        verbose: bool = True,
        autoload: bool = True,
    ):
        """
        Create a hotel ledger.

        Args:
            name: Ledger identifier
            snapshot_path: Booking snapshot file (None = in-memory only)
            rooms: Seed rooms as (number, RoomType) pairs
            verbose: Log mutations at INFO (default: True)
            autoload: Load the snapshot right away if the file exists (default: True)

        Raises:
            PersistenceError: If autoload finds a file that is unreadable, not a
                snapshot, or from another schema or a newer version. The file is
                left untouched; malformed record lines are skipped, not raised.
        """
        super().__init__(name, snapshot_path=snapshot_path, verbose=verbose)
        self._seed_rooms = tuple(rooms)
        self.rooms = RecordStore("room", key=lambda room: room.number)
        self.bookings = RecordStore("booking", key=lambda booking: booking.booking_id)
        self._next_booking_number = 1
        self._reset_state()

        self.register_mutation("book", self._book)
        self.register_mutation("cancel", self._cancel)
        self.register_aggregate("occupancy", self.occupancy)
        self.register_aggregate("revenue", self.revenue)
        self.register_aggregate("quote", self.quote)
        self._open(autoload)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> HotelLedger:
        """Hotel ledger persisting to hotel_data.jsonl in the configured data dir."""
        settings = settings or get_settings()
        return cls(snapshot_path=settings.hotel_snapshot_path, **kwargs)

    # ========================================================================
    # QUERIES
    # ========================================================================

    @synchronized
    def list_resources(self) -> Tuple[Room, ...]:
        return self.rooms.list_all()

    @synchronized
    def get_room(self, number: Any) -> Room:
        return self.rooms.get(parse_int(number, "room_number"))

    @synchronized
    def search(
        self,
        room_type: Union[RoomType, str, None] = None,
        check_in: Any = None,
        check_out: Any = None,
    ) -> Tuple[Room, ...]:
        """
        Rooms of a type that are free for a stay.

        Without dates, returns rooms whose available flag is set.

        Raises:
            MalformedInput: If only one date is given or input cannot be parsed
            InvalidRange: If check-out is not after check-in
        """
        wanted = RoomType.parse(room_type) if room_type is not None else None
        if check_in is None and check_out is None:
            return self.rooms.find(room_type=wanted, available=True)
        if check_in is None or check_out is None:
            raise MalformedInput("search needs both check_in and check_out")
        start, end = parse_stay(check_in, check_out)
        return self.rooms.find(
            lambda room: self._is_free(room.number, start, end),
            room_type=wanted,
        )

    @synchronized
    def get_booking(self, booking_id: str) -> Booking:
        return self.bookings.get(booking_id)

    @synchronized
    def list_bookings(self) -> Tuple[Booking, ...]:
        return self.bookings.list_all()

    @synchronized
    def find_bookings(self, **criteria: Any) -> Tuple[Booking, ...]:
        """Filter bookings by attributes, e.g. status=BookingStatus.CONFIRMED."""
        return self.bookings.find(**criteria)

    # ========================================================================
    # AGGREGATES
    # ========================================================================

    def quote(self, room_type: Union[RoomType, str], check_in: Any, check_out: Any) -> Quote:
        return compute_quote(room_type, check_in, check_out)

    @synchronized
    def occupancy(self) -> Dict[str, Any]:
        return occupancy(self.rooms.list_all(), lambda room: not room.available)

    @synchronized
    def revenue(self) -> Decimal:
        """Total of all confirmed bookings."""
        return round_money(sum(
            (booking.amount for booking in self.bookings if booking.is_open),
            Decimal("0"),
        ))

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def book(
        self,
        customer: Union[Customer, Mapping[str, Any], str],
        room_type: Union[RoomType, str, None],
        check_in: Any,
        check_out: Any,
        persons: Any = 1,
        room_number: Any = None,
    ) -> MutationResult:
        return self._mutate(
            "book", self._book,
            customer=customer, room_type=room_type, check_in=check_in,
            check_out=check_out, persons=persons, room_number=room_number,
        )

    def cancel(self, booking_id: str) -> MutationResult:
        return self._mutate("cancel", self._cancel, booking_id=booking_id)

    def import_legacy(self, path: os.PathLike) -> MutationResult:
        """
        Import bookings from the legacy comma-separated file.

        Legacy rows carry no dates or amounts, so a confirmed one blocks its
        room for every stay until cancelled. Rows for unknown rooms, with an
        unknown status, or with an id already present are skipped.

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        rows = read_legacy_bookings(path)
        if rows is None:
            return self._reject("import_legacy", NotFound(f"legacy file {path} not found"))
        return self._mutate("import_legacy", self._import_legacy, rows)

    def _book(
        self,
        customer: Union[Customer, Mapping[str, Any], str],
        room_type: Union[RoomType, str, None],
        check_in: Any,
        check_out: Any,
        persons: Any = 1,
        room_number: Any = None,
    ) -> Booking:
        customer = Customer.coerce(customer)
        if not customer.email.strip():
            raise MalformedInput("customer email cannot be empty")
        persons = parse_positive_int(persons, "persons")

        if room_number is not None:
            room = self.rooms.get(parse_int(room_number, "room_number"))
            if room_type is not None and RoomType.parse(room_type) is not room.room_type:
                raise MalformedInput(
                    f"room {room.number} is {room.room_type.label}, not {RoomType.parse(room_type).label}"
                )
            stay = compute_quote(room.room_type, check_in, check_out)
            if not self._is_free(room.number, stay.check_in, stay.check_out):
                raise Unavailable(
                    f"room {room.number} is not available from {stay.check_in} to {stay.check_out}"
                )
        else:
            if room_type is None:
                raise MalformedInput("book needs a room_type or a room_number")
            stay = compute_quote(room_type, check_in, check_out)
            free = self.rooms.find(
                lambda candidate: self._is_free(candidate.number, stay.check_in, stay.check_out),
                room_type=stay.room_type,
            )
            if not free:
                raise Unavailable(
                    f"no {stay.room_type.label} rooms available from {stay.check_in} to {stay.check_out}"
                )
            room = free[0]

        booking = Booking(
            booking_id=self._peek_booking_id(),
            customer=customer,
            room_number=room.number,
            check_in=stay.check_in,
            check_out=stay.check_out,
            persons=persons,
            nights=stay.nights,
            amount=stay.total,
        )

        # All checks passed - apply.
        self.bookings.add(booking)
        self._next_booking_number += 1
        room.available = False
        return booking

    def _cancel(self, booking_id: str) -> Booking:
        booking = self.bookings.get(booking_id)
        if not booking.is_open:
            raise InvalidState(f"booking {booking_id} is {booking.status.value}; only confirmed bookings can be cancelled")
        room = self.rooms.get(booking.room_number)

        cancelled = replace(booking, status=BookingStatus.CANCELLED)
        self.bookings.replace(cancelled)
        self._refresh_availability(room)
        return cancelled

    def _import_legacy(self, rows: List[Dict[str, str]]) -> Tuple[Booking, ...]:
        statuses = {status.value: status for status in BookingStatus}
        imported: List[Booking] = []
        seen = set()
        for row in rows:
            status = statuses.get(row["status"])
            try:
                room_number = int(row["room_number"])
            except ValueError:
                continue
            booking_id = row["booking_id"]
            if status is None or room_number not in self.rooms:
                continue
            if not row["customer_name"] or not booking_id:
                continue
            if booking_id in self.bookings or booking_id in seen:
                continue
            seen.add(booking_id)
            imported.append(Booking(
                booking_id=booking_id,
                customer=Customer(name=row["customer_name"]),
                room_number=room_number,
                check_in=None,
                check_out=None,
                persons=1,
                nights=0,
                amount=round_money(0),
                status=status,
            ))

        # All rows parsed - apply.
        for booking in imported:
            self.bookings.add(booking)
        for room in self.rooms:
            self._refresh_availability(room)
        return tuple(imported)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _is_free(self, room_number: int, check_in: date, check_out: date) -> bool:
        return not any(
            booking.overlaps(check_in, check_out)
            for booking in self.bookings.find(room_number=room_number)
        )

    def _refresh_availability(self, room: Room) -> None:
        room.available = not any(
            booking.is_open for booking in self.bookings.find(room_number=room.number)
        )

    def _peek_booking_id(self) -> str:
        number = self._next_booking_number
        while f"BK{number:04d}" in self.bookings:
            number += 1
        self._next_booking_number = number
        return f"BK{number:04d}"

    # ========================================================================
    # SNAPSHOT HOOKS
    # ========================================================================

    def _reset_state(self) -> None:
        self.rooms.clear()
        for number, room_type in self._seed_rooms:
            self.rooms.add(Room(number, room_type))
        self.bookings.clear()
        self._next_booking_number = 1

    def _snapshot_records(self) -> Iterable[SnapshotRecord]:
        yield {"type": "meta", "next_booking_number": self._next_booking_number}
        for booking in self.bookings:
            yield {
                "type": "booking",
                "booking_id": booking.booking_id,
                "customer": booking.customer.to_dict(),
                "room_number": booking.room_number,
                "check_in": booking.check_in.isoformat() if booking.check_in else None,
                "check_out": booking.check_out.isoformat() if booking.check_out else None,
                "persons": booking.persons,
                "nights": booking.nights,
                "amount": str(booking.amount),
                "status": booking.status.value,
            }

    def _restore_records(self, records: List[SnapshotRecord]) -> int:
        skipped = 0
        next_number = 1
        for record in records:
            try:
                if record["type"] == "meta":
                    next_number = max(next_number, int(record["next_booking_number"]))
                elif record["type"] == "booking":
                    booking = _booking_from_record(record)
                    if booking.room_number not in self.rooms:
                        raise NotFound(f"room {booking.room_number} not found")
                    self.bookings.add(booking)
                else:
                    skipped += 1
            except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError):
                skipped += 1
        self._next_booking_number = next_number
        for room in self.rooms:
            self._refresh_availability(room)
        return skipped


def _booking_from_record(record: SnapshotRecord) -> Booking:
    check_in = record.get("check_in")
    check_out = record.get("check_out")
    persons = int(record["persons"])
    nights = int(record["nights"])
    if persons < 1 or nights < 0:
        raise ValueError("persons must be >= 1 and nights >= 0")
    return Booking(
        booking_id=str(record["booking_id"]),
        customer=Customer.coerce(record["customer"]),
        room_number=int(record["room_number"]),
        check_in=date.fromisoformat(check_in) if check_in else None,
        check_out=date.fromisoformat(check_out) if check_out else None,
        persons=persons,
        nights=nights,
        amount=round_money(Decimal(record["amount"])),
        status=BookingStatus(record["status"]),
    )
