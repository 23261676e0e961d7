"""
ledger_engine - In-memory record-keeping ledgers with snapshot persistence

One engine, three domains: hotel bookings, stock trading and a grade book.
Every state change goes through a ledger mutation that either applies
completely or is rejected with a typed error.

Usage:
    from ledger_engine import HotelLedger, TradingLedger, Gradebook, Customer

    hotel = HotelLedger(snapshot_path="hotel_data.jsonl")
    result = hotel.book(Customer("Ann", "ann@example.com"), "standard",
                        "01-03-2025", "03-03-2025")
    result.record.amount          # Decimal("5900.00")

    trading = TradingLedger(rng=42)
    trading.buy("AAPL", 10)
    trading.sell("AAPL", 15).error_kind   # ErrorKind.INSUFFICIENT_HOLDINGS

    grades = Gradebook()
    grades.add_student("Ada", 1)
    grades.add_grade(1, 80)
    grades.perform("add_grade", student_id=1, grade=90)
    grades.aggregate("class_average")     # 85.0
"""

# Core types
from .core import (
    HOTEL_TAX_RATE,
    TRADE_FEE_RATE,
    MONEY_PLACES,
    DEFAULT_STARTING_BALANCE,
    MARKET_TICK_SECONDS,
    MARKET_VOLATILITY,
    MIN_GRADE,
    MAX_GRADE,
    SNAPSHOT_FORMAT,
    SNAPSHOT_SCHEMA_VERSION,
    ExecuteResult,
    ErrorKind,
    LedgerError,
    ValidationError,
    NotFound,
    Unavailable,
    InvalidRange,
    InsufficientFunds,
    InsufficientHoldings,
    InvalidState,
    DuplicateId,
    MalformedInput,
    PersistenceError,
    MutationResult,
    round_money,
    apply_rate,
)

# Engine
from .store import RecordStore
from .ledger import LedgerEngine, synchronized
from .snapshot import SnapshotStore, read_legacy_bookings, read_legacy_portfolio
from .clock import SimulationClock

# Aggregates
from .aggregates import (
    holdings_value,
    portfolio_value,
    mean_grade,
    highest_grade,
    lowest_grade,
    letter_grade,
    class_average,
    grade_distribution,
    occupancy,
)

# Market
from .market import (
    Stock,
    PriceHistory,
    DEFAULT_STOCKS,
    create_default_stocks,
    random_walk_step,
)

# Configuration and logging
from .config import Settings, load_settings, get_settings
from .log import configure_logging, get_logger

# Domains
from .domains import (
    RoomType,
    BookingStatus,
    Room,
    Customer,
    Booking,
    Quote,
    compute_quote,
    HotelLedger,
    TradeSide,
    Trade,
    MarketTick,
    TradingLedger,
    Student,
    GradeEntry,
    Gradebook,
)
