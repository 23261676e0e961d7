"""
domains - Domain ledgers built on LedgerEngine

    HotelLedger   rooms, customers and bookings
    TradingLedger a portfolio trading against a simulated market
    Gradebook     students and their grades
"""

from .hotel import (
    RoomType,
    BookingStatus,
    Room,
    Customer,
    Booking,
    Quote,
    DEFAULT_ROOMS,
    parse_stay,
    compute_quote,
    HotelLedger,
)

from .trading import (
    TradeSide,
    Trade,
    MarketTick,
    MARKET_CSV_HEADER,
    TradingLedger,
)

from .grades import (
    Student,
    GradeEntry,
    SAMPLE_NAMES,
    Gradebook,
)
