"""
conftest.py - Shared pytest fixtures for ledger engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Domain ledgers (hotel, trading, grade book), in memory or on disk
- A fixed clock so trade timestamps are deterministic
- A helper for booking customers
"""

import pytest
from datetime import datetime

import numpy as np

from ledger_engine import (
    Customer,
    HotelLedger,
    TradingLedger,
    Gradebook,
)


FIXED_NOW = datetime(2025, 3, 1, 14, 3, 7)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fixed_clock() -> datetime:
    return FIXED_NOW


def make_customer(name: str = "Asha Rao", email: str = "asha@example.com") -> Customer:
    """Customer with the fields a booking form requires."""
    return Customer(name=name, email=email, phone="9876543210", id_number="ID-1")


# =============================================================================
# HOTEL FIXTURES
# =============================================================================

@pytest.fixture
def customer():
    return make_customer()


@pytest.fixture
def hotel():
    """In-memory hotel with the six seed rooms."""
    return HotelLedger(verbose=False)


@pytest.fixture
def hotel_path(tmp_path):
    return tmp_path / "hotel_data.jsonl"


@pytest.fixture
def persistent_hotel(hotel_path):
    """Hotel writing through to a snapshot in a temporary directory."""
    return HotelLedger(snapshot_path=hotel_path, verbose=False)


# =============================================================================
# TRADING FIXTURES
# =============================================================================

@pytest.fixture
def trading():
    """In-memory portfolio with a seeded market and a fixed clock."""
    return TradingLedger(rng=np.random.default_rng(42), now=fixed_clock, verbose=False)


@pytest.fixture
def portfolio_path(tmp_path):
    return tmp_path / "portfolio.jsonl"


@pytest.fixture
def persistent_trading(portfolio_path):
    ledger = TradingLedger(snapshot_path=portfolio_path, rng=7, now=fixed_clock, verbose=False)
    yield ledger
    ledger.close()


# =============================================================================
# GRADE BOOK FIXTURES
# =============================================================================

@pytest.fixture
def gradebook():
    return Gradebook(verbose=False)


@pytest.fixture
def graded_book(gradebook):
    """Two students: Ada (80, 90) and Ben (60)."""
    gradebook.add_student("Ada", 1).unwrap()
    gradebook.add_student("Ben", 2).unwrap()
    gradebook.add_grade(1, 80).unwrap()
    gradebook.add_grade(1, 90).unwrap()
    gradebook.add_grade(2, 60).unwrap()
    return gradebook
