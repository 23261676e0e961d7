"""
test_aggregates.py - Unit tests for the aggregate calculator
"""

import pytest
from decimal import Decimal

from ledger_engine import (
    holdings_value, portfolio_value,
    mean_grade, highest_grade, lowest_grade, letter_grade,
    class_average, grade_distribution, occupancy,
)


class TestPortfolio:

    def test_holdings_value(self):
        values = holdings_value({"AAPL": 10, "MSFT": 2}, {"AAPL": Decimal("175.25"), "MSFT": Decimal("330.45")})
        assert values == {"AAPL": Decimal("1752.50"), "MSFT": Decimal("660.90")}

    def test_unpriced_symbols_ignored(self):
        assert holdings_value({"XYZ": 5}, {"AAPL": Decimal("1")}) == {}

    def test_portfolio_value(self):
        total = portfolio_value(Decimal("8247.50"), {"AAPL": 10}, {"AAPL": Decimal("175.25")})
        assert total == Decimal("10000.00")

    def test_portfolio_value_cash_only(self):
        assert portfolio_value(Decimal("12.3"), {}, {}) == Decimal("12.30")


class TestGrades:

    def test_mean(self):
        assert mean_grade([80.0, 90.0]) == pytest.approx(85.0)

    @pytest.mark.parametrize("func", [mean_grade, highest_grade, lowest_grade])
    def test_empty_is_zero(self, func):
        assert func([]) == 0.0

    def test_highest_lowest(self):
        assert highest_grade([72.5, 99.0, 60.0]) == 99.0
        assert lowest_grade([72.5, 99.0, 60.0]) == 60.0

    @pytest.mark.parametrize("average, letter", [
        (100.0, "A"), (90.0, "A"), (89.99, "B"), (80.0, "B"),
        (70.0, "C"), (60.0, "D"), (59.99, "F"), (0.0, "F"),
    ])
    def test_letter_boundaries(self, average, letter):
        assert letter_grade(average) == letter

    def test_class_average_weights_students_equally(self):
        """Mean of averages, not the pooled mean of all grades."""
        assert class_average([85.0, 60.0]) == pytest.approx(72.5)

    def test_class_average_empty(self):
        assert class_average([]) == 0.0

    def test_distribution_has_every_letter(self):
        assert grade_distribution([95.0, 85.0, 82.0]) == {"A": 1, "B": 2, "C": 0, "D": 0, "F": 0}


class TestOccupancy:

    def test_counts(self):
        rooms = [1, 2, 3, 4]
        result = occupancy(rooms, lambda room: room in (1, 3))
        assert result == {"total": 4, "occupied": 2, "available": 2, "rate": Decimal("0.50")}

    def test_no_rooms(self):
        assert occupancy([], lambda room: True)["rate"] == Decimal("0.00")
