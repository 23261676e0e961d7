"""
parsing.py - Front-end input coercion

Every mutation accepts either typed values or the raw strings a form would
hand over. These helpers turn one into the other and raise MalformedInput
when they cannot, so a typo becomes a REJECTED result, not a crash.
"""

from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .core import MalformedInput


# Day-first is what the booking forms use; ISO is accepted for programmatic callers.
DATE_FORMATS = ("%d-%m-%Y", "%Y-%m-%d")


def parse_date(value: Any, field: str = "date") -> date:
    """
    Accept a date, a datetime (date part kept), or 'dd-mm-yyyy' / 'yyyy-mm-dd' text.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    raise MalformedInput(f"{field}: expected a date as dd-mm-yyyy, got {value!r}")


def parse_int(value: Any, field: str = "value") -> int:
    if isinstance(value, bool):
        raise MalformedInput(f"{field}: expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise MalformedInput(f"{field}: expected an integer, got {value!r}")


def parse_positive_int(value: Any, field: str = "quantity") -> int:
    number = parse_int(value, field)
    if number <= 0:
        raise MalformedInput(f"{field} must be positive, got {number}")
    return number


def parse_decimal(value: Any, field: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise MalformedInput(f"{field}: expected a number, got {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        number = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except InvalidOperation:
        raise MalformedInput(f"{field}: expected a number, got {value!r}") from None
    if not number.is_finite():
        raise MalformedInput(f"{field}: expected a finite number, got {value!r}")
    return number


def parse_grade(value: Any, field: str = "grade") -> float:
    """Parse a grade as float. Range checks are the caller's job."""
    if isinstance(value, bool):
        raise MalformedInput(f"{field}: expected a number, got {value!r}")
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise MalformedInput(f"{field}: expected a number, got {value!r}") from None
    else:
        raise MalformedInput(f"{field}: expected a number, got {value!r}")
    if number != number or number in (float("inf"), float("-inf")):
        raise MalformedInput(f"{field}: expected a finite number, got {value!r}")
    return number


def parse_symbol(value: Any) -> str:
    """Ticker symbols are trimmed and upper-cased."""
    if not isinstance(value, str) or not value.strip():
        raise MalformedInput(f"symbol: expected a ticker, got {value!r}")
    return value.strip().upper()


def parse_name(value: Any, field: str = "name") -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedInput(f"{field} cannot be empty")
    return value.strip()
