"""
aggregates.py - Aggregate Calculator

Pure functions deriving summary values from current records. Nothing here
is cached or persisted: callers recompute on every request, so a view
is never stale after a mutation.

Money aggregates work in Decimal. Grade aggregates work in float, matching
how grades are entered, and use numpy for the reductions.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Callable, Dict, Iterable, Mapping, Sequence

import numpy as np

from .core import round_money


GRADE_LETTERS = ("A", "B", "C", "D", "F")

# Lower bound of each letter band, checked in order.
LETTER_THRESHOLDS = ((90.0, "A"), (80.0, "B"), (70.0, "C"), (60.0, "D"))


# ============================================================================
# PORTFOLIO
# ============================================================================

def holdings_value(holdings: Mapping[str, int], prices: Mapping[str, Decimal]) -> Dict[str, Decimal]:
    """
    Value each holding at its current price.

    Symbols without a price are left out.

    Returns:
        Dict mapping symbol to quantity x price, rounded to cents
    """
    return {
        symbol: round_money(Decimal(quantity) * prices[symbol])
        for symbol, quantity in holdings.items()
        if symbol in prices
    }


def portfolio_value(
    balance: Decimal,
    holdings: Mapping[str, int],
    prices: Mapping[str, Decimal],
) -> Decimal:
    """
    Cash balance plus the market value of every priced holding.

    Example:
        portfolio_value(Decimal("8247.50"), {"AAPL": 10}, {"AAPL": Decimal("175.25")})
        # Decimal("10000.00")
    """
    return round_money(balance + sum(holdings_value(holdings, prices).values(), Decimal("0")))


# ============================================================================
# GRADES
# ============================================================================

def mean_grade(grades: Sequence[float]) -> float:
    """Mean of a student's grades; 0.0 when there are none."""
    if len(grades) == 0:
        return 0.0
    return float(np.mean(np.asarray(grades, dtype=float)))


def highest_grade(grades: Sequence[float]) -> float:
    if len(grades) == 0:
        return 0.0
    return float(np.max(np.asarray(grades, dtype=float)))


def lowest_grade(grades: Sequence[float]) -> float:
    if len(grades) == 0:
        return 0.0
    return float(np.min(np.asarray(grades, dtype=float)))


def letter_grade(average: float) -> str:
    """Letter for an average: A >= 90, B >= 80, C >= 70, D >= 60, else F."""
    for threshold, letter in LETTER_THRESHOLDS:
        if average >= threshold:
            return letter
    return "F"


def class_average(per_student_averages: Sequence[float]) -> float:
    """
    Mean of per-student averages.

    Each student weighs the same regardless of how many grades they have,
    so this is not the pooled mean of all raw grades.
    """
    return mean_grade(per_student_averages)


def grade_distribution(averages: Iterable[float]) -> Dict[str, int]:
    """Count of students per letter; every letter is present."""
    counts = {letter: 0 for letter in GRADE_LETTERS}
    for average in averages:
        counts[letter_grade(average)] += 1
    return counts


# ============================================================================
# OCCUPANCY
# ============================================================================

def occupancy(rooms: Sequence, is_occupied: Callable[[object], bool]) -> Dict[str, object]:
    """
    Count occupied and free rooms.

    Returns:
        Dict with total, occupied, available (ints) and rate (Decimal ratio
        of occupied rooms, rounded to cents; 0.00 for no rooms)
    """
    total = len(rooms)
    occupied = sum(1 for room in rooms if is_occupied(room))
    rate = round_money(Decimal(occupied) / Decimal(total)) if total else round_money(0)
    return {
        "total": total,
        "occupied": occupied,
        "available": total - occupied,
        "rate": rate,
    }
