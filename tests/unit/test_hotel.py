"""
test_hotel.py - Unit tests for the hotel booking ledger

Tests:
- Pricing and quotes
- Search by type and date range
- book / cancel validation and state changes
- Snapshot round-trip and legacy import
"""

import pytest
from datetime import date
from decimal import Decimal

from ledger_engine import (
    BookingStatus, Customer, ErrorKind, HotelLedger, InvalidRange, MalformedInput,
    NotFound, PersistenceError, RoomType, compute_quote,
)


class TestRoomType:

    @pytest.mark.parametrize("text", ["STANDARD", "standard", " Standard "])
    def test_parse_case_insensitive(self, text):
        assert RoomType.parse(text) is RoomType.STANDARD

    def test_parse_unknown(self):
        with pytest.raises(MalformedInput):
            RoomType.parse("Penthouse")

    def test_prices(self):
        assert RoomType.STANDARD.base_price == Decimal("2500")
        assert RoomType.DELUXE.base_price == Decimal("4000")
        assert RoomType.SUITE.base_price == Decimal("6000")


class TestQuote:

    def test_two_nights_standard(self):
        quote = compute_quote("Standard", "01-03-2025", "03-03-2025")
        assert quote.nights == 2
        assert quote.base == Decimal("5000.00")
        assert quote.tax == Decimal("900.00")
        assert quote.total == Decimal("5900.00")

    def test_suite_one_night(self):
        assert compute_quote(RoomType.SUITE, date(2025, 3, 1), date(2025, 3, 2)).total == Decimal("7080.00")

    @pytest.mark.parametrize("check_out", ["01-03-2025", "28-02-2025"])
    def test_check_out_must_follow_check_in(self, check_out):
        with pytest.raises(InvalidRange):
            compute_quote("Standard", "01-03-2025", check_out)

    def test_aggregate_dispatch(self, hotel):
        quote = hotel.aggregate("quote", room_type="Deluxe", check_in="01-03-2025", check_out="04-03-2025")
        assert quote.total == Decimal("14160.00")


class TestSearch:

    def test_all_free_initially(self, hotel):
        assert [room.number for room in hotel.search("Standard")] == [101, 102, 103]

    def test_by_range(self, hotel, customer):
        hotel.book(customer, "Standard", "01-03-2025", "03-03-2025").unwrap()
        overlapping = hotel.search("Standard", "02-03-2025", "04-03-2025")
        assert [room.number for room in overlapping] == [102, 103]
        later = hotel.search("Standard", "03-03-2025", "05-03-2025")
        assert [room.number for room in later] == [101, 102, 103]

    def test_one_date_only(self, hotel):
        with pytest.raises(MalformedInput):
            hotel.search("Standard", check_in="01-03-2025")

    def test_all_types(self, hotel):
        assert len(hotel.search()) == 6


class TestBook:

    def test_picks_first_free_room(self, hotel, customer):
        booking = hotel.book(customer, "Deluxe", "01-03-2025", "02-03-2025").unwrap()
        assert booking.booking_id == "BK0001"
        assert booking.room_number == 201
        assert booking.amount == Decimal("4720.00")
        assert booking.status is BookingStatus.CONFIRMED
        assert not hotel.get_room(201).available

    def test_sequential_ids(self, hotel, customer):
        ids = [hotel.book(customer, "Standard", "01-03-2025", "02-03-2025").record.booking_id for _ in range(3)]
        assert ids == ["BK0001", "BK0002", "BK0003"]

    def test_explicit_room(self, hotel, customer):
        booking = hotel.book(customer, None, "01-03-2025", "02-03-2025", room_number=103).unwrap()
        assert booking.room_number == 103

    def test_explicit_room_type_mismatch(self, hotel, customer):
        result = hotel.book(customer, "Suite", "01-03-2025", "02-03-2025", room_number=103)
        assert result.error_kind is ErrorKind.MALFORMED_INPUT

    def test_unknown_room(self, hotel, customer):
        result = hotel.book(customer, None, "01-03-2025", "02-03-2025", room_number=999)
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_sold_out(self, hotel, customer):
        hotel.book(customer, "Suite", "01-03-2025", "05-03-2025").unwrap()
        result = hotel.book(customer, "Suite", "03-03-2025", "04-03-2025")
        assert result.error_kind is ErrorKind.UNAVAILABLE

    def test_back_to_back_stays_allowed(self, hotel, customer):
        hotel.book(customer, "Suite", "01-03-2025", "03-03-2025").unwrap()
        assert hotel.book(customer, "Suite", "03-03-2025", "04-03-2025").ok

    @pytest.mark.parametrize("details", [
        {"name": "", "email": "a@example.com"},
        {"name": "Asha", "email": ""},
        {"name": "Asha", "email": "a@example.com", "shoe_size": "9"},
        {"email": "a@example.com"},
        {"name": "Asha", "email": None},
        {"name": 42, "email": "a@example.com"},
        42,
    ])
    def test_bad_customer(self, hotel, details):
        result = hotel.book(details, "Standard", "01-03-2025", "02-03-2025")
        assert result.error_kind is ErrorKind.MALFORMED_INPUT
        assert hotel.list_bookings() == ()

    def test_customer_without_name_rejected_through_perform(self, hotel):
        result = hotel.perform(
            "book", customer={"email": "a@example.com"}, room_type="Standard",
            check_in="01-03-2025", check_out="03-03-2025",
        )
        assert result.error_kind is ErrorKind.MALFORMED_INPUT
        assert hotel.revision == 0
        assert hotel.get_room(101).available

    def test_customer_from_mapping(self, hotel):
        booking = hotel.book({"name": " Asha ", "email": "a@example.com"}, "Standard",
                             "01-03-2025", "02-03-2025").unwrap()
        assert booking.customer == Customer(name="Asha", email="a@example.com")

    @pytest.mark.parametrize("persons", [0, "-1", "two"])
    def test_bad_persons(self, hotel, customer, persons):
        result = hotel.book(customer, "Standard", "01-03-2025", "02-03-2025", persons=persons)
        assert result.error_kind is ErrorKind.MALFORMED_INPUT

    def test_bad_dates(self, hotel, customer):
        assert hotel.book(customer, "Standard", "1st March", "02-03-2025").error_kind is ErrorKind.MALFORMED_INPUT
        assert hotel.book(customer, "Standard", "02-03-2025", "02-03-2025").error_kind is ErrorKind.INVALID_RANGE

    def test_rejection_consumes_no_id(self, hotel, customer):
        hotel.book(customer, "Standard", "02-03-2025", "01-03-2025")
        assert hotel.book(customer, "Standard", "01-03-2025", "02-03-2025").record.booking_id == "BK0001"


class TestCancel:

    def test_restores_availability(self, hotel, customer):
        booking = hotel.book(customer, "Standard", "01-03-2025", "03-03-2025").unwrap()
        cancelled = hotel.cancel(booking.booking_id).unwrap()
        assert cancelled.status is BookingStatus.CANCELLED
        assert hotel.get_booking(booking.booking_id).status is BookingStatus.CANCELLED
        assert hotel.get_room(101).available

    def test_room_stays_taken_while_other_booking_open(self, hotel, customer):
        first = hotel.book(customer, None, "01-03-2025", "02-03-2025", room_number=101).unwrap()
        hotel.book(customer, None, "05-03-2025", "06-03-2025", room_number=101).unwrap()
        hotel.cancel(first.booking_id).unwrap()
        assert not hotel.get_room(101).available

    def test_unknown_booking(self, hotel):
        assert hotel.cancel("BK9999").error_kind is ErrorKind.NOT_FOUND


class TestAggregates:

    def test_occupancy_and_revenue(self, hotel, customer):
        hotel.book(customer, "Standard", "01-03-2025", "03-03-2025").unwrap()
        second = hotel.book(customer, "Suite", "01-03-2025", "02-03-2025").unwrap()
        hotel.cancel(second.booking_id).unwrap()
        assert hotel.occupancy() == {"total": 6, "occupied": 1, "available": 5, "rate": Decimal("0.17")}
        assert hotel.revenue() == Decimal("5900.00")
        assert hotel.aggregate("revenue") == Decimal("5900.00")

    def test_find_bookings(self, hotel, customer):
        hotel.book(customer, "Standard", "01-03-2025", "03-03-2025").unwrap()
        other = hotel.book(customer, "Deluxe", "01-03-2025", "03-03-2025").unwrap()
        hotel.cancel(other.booking_id).unwrap()
        open_ids = [b.booking_id for b in hotel.find_bookings(status=BookingStatus.CONFIRMED)]
        assert open_ids == ["BK0001"]

    def test_get_missing_booking_raises(self, hotel):
        with pytest.raises(NotFound):
            hotel.get_booking("BK0042")


class TestPersistence:

    def test_round_trip(self, persistent_hotel, hotel_path, customer):
        booking = persistent_hotel.book(customer, "Standard", "01-03-2025", "03-03-2025").unwrap()
        persistent_hotel.book(customer, "Suite", "01-03-2025", "02-03-2025").unwrap()
        persistent_hotel.cancel("BK0002").unwrap()

        reloaded = HotelLedger(snapshot_path=hotel_path, verbose=False)
        assert reloaded.list_bookings() == persistent_hotel.list_bookings()
        assert reloaded.get_booking(booking.booking_id).customer == customer
        assert not reloaded.get_room(101).available
        assert reloaded.get_room(301).available
        assert reloaded.book(customer, "Standard", "01-03-2025", "02-03-2025").record.booking_id == "BK0003"

    def test_unknown_room_in_snapshot_skipped(self, persistent_hotel, hotel_path, customer):
        persistent_hotel.book(customer, None, "01-03-2025", "02-03-2025", room_number=301).unwrap()
        smaller = HotelLedger(snapshot_path=hotel_path, rooms=[(101, RoomType.STANDARD)], verbose=False)
        assert smaller.list_bookings() == ()
        assert smaller.last_load_skipped == 1

    def test_garbled_header_raises_and_keeps_file(self, hotel_path):
        hotel_path.write_text("{not json\n" + '{"type": "meta", "next_booking_number": 4}\n', encoding="utf-8")
        before = hotel_path.read_bytes()
        with pytest.raises(PersistenceError):
            HotelLedger(snapshot_path=hotel_path, verbose=False)
        assert hotel_path.read_bytes() == before

    def test_garbled_header_without_autoload(self, hotel_path):
        hotel_path.write_text("{not json\n", encoding="utf-8")
        hotel = HotelLedger(snapshot_path=hotel_path, verbose=False, autoload=False)
        with pytest.raises(PersistenceError):
            hotel.load_snapshot()
        assert hotel.list_bookings() == ()


class TestLegacyImport:

    def test_import_blocks_rooms(self, hotel, tmp_path, customer):
        legacy = tmp_path / "hotel_data.txt"
        legacy.write_text(
            "BK1234,Asha Rao,101,Confirmed\n"
            "BK5678,Ravi,102,Cancelled\n"
            "BK9999,Ghost,999,Confirmed\n",
            encoding="utf-8",
        )
        result = hotel.import_legacy(legacy)
        assert [b.booking_id for b in result.unwrap()] == ["BK1234", "BK5678"]
        assert not hotel.get_room(101).available
        assert hotel.get_room(102).available
        assert [room.number for room in hotel.search("Standard", "01-06-2030", "02-06-2030")] == [102, 103]

    def test_missing_legacy_file(self, hotel, tmp_path):
        assert hotel.import_legacy(tmp_path / "absent.txt").error_kind is ErrorKind.NOT_FOUND

    def test_malformed_row_after_valid_one(self, hotel, tmp_path):
        legacy = tmp_path / "hotel_data.txt"
        legacy.write_text(
            "BK1,Asha,101,Confirmed\n"
            "BK2,Ben,²,Confirmed\n"
            "BK1,Asha again,102,Confirmed\n",
            encoding="utf-8",
        )
        result = hotel.import_legacy(legacy)
        assert [b.booking_id for b in result.unwrap()] == ["BK1"]
        assert not hotel.get_room(101).available
        assert hotel.get_room(102).available
        assert hotel.revision == 1

    def test_unparseable_room_number_skipped(self, hotel):
        rows = [
            {"booking_id": "BK1", "customer_name": "Asha", "room_number": "101", "status": "Confirmed"},
            {"booking_id": "BK2", "customer_name": "Ben", "room_number": "²", "status": "Confirmed"},
        ]
        imported = hotel._import_legacy(rows)
        assert [b.booking_id for b in imported] == ["BK1"]
        assert [b.booking_id for b in hotel.list_bookings()] == ["BK1"]
        assert not hotel.get_room(101).available
