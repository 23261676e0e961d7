"""
market.py - Simulated stock market

Provides the market side of the trading domain:
- Stock: a tradeable resource whose price and volume change over time
- PriceHistory: timestamped price observations with point-in-time lookup
- DEFAULT_STOCKS: the seed list every market starts from
- random_walk_step(): one bounded random move of a stock's price

Prices are Decimal, in dollars, rounded to cents. Randomness comes from an
injected numpy Generator so simulations are reproducible from a seed.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

import numpy as np

from .core import (
    INITIAL_VOLUME, MARKET_VOLATILITY, VOLUME_RANGE,
    round_money, to_decimal,
)


# Observations kept per stock; the oldest are dropped past this.
PRICE_HISTORY_LIMIT = 1000


class PriceHistory:
    """
    Price observations for one stock, kept in timestamp order.

    Uses the most recent observation at or before a requested time. Only the
    newest ``max_length`` observations are kept.
    """

    def __init__(
        self,
        observations: Optional[List[Tuple[datetime, Decimal]]] = None,
        max_length: int = PRICE_HISTORY_LIMIT,
    ):
        if max_length <= 0:
            raise ValueError(f"max_length must be > 0, got {max_length}")
        self.max_length = max_length
        ordered = sorted(observations or [], key=lambda item: item[0])[-max_length:]
        self._timestamps: List[datetime] = [ts for ts, _ in ordered]
        self._prices: List[Decimal] = [price for _, price in ordered]

    def add_price(self, timestamp: datetime, price: Decimal) -> None:
        """
        Record a price observation.

        Observations usually arrive in order; out-of-order ones are inserted
        at their sorted position.
        """
        if self._timestamps and timestamp < self._timestamps[-1]:
            index = bisect_right(self._timestamps, timestamp)
            self._timestamps.insert(index, timestamp)
            self._prices.insert(index, price)
        else:
            self._timestamps.append(timestamp)
            self._prices.append(price)
        if len(self._timestamps) > self.max_length:
            excess = len(self._timestamps) - self.max_length
            del self._timestamps[:excess]
            del self._prices[:excess]

    def price_at(self, timestamp: datetime) -> Optional[Decimal]:
        """Price at or before the timestamp, or None if there is no earlier observation."""
        index = bisect_right(self._timestamps, timestamp)
        if index == 0:
            return None
        return self._prices[index - 1]

    @property
    def latest(self) -> Optional[Decimal]:
        return self._prices[-1] if self._prices else None

    def prices(self) -> List[Decimal]:
        return list(self._prices)

    def observations(self) -> List[Tuple[datetime, Decimal]]:
        return list(zip(self._timestamps, self._prices))

    def __len__(self) -> int:
        return len(self._prices)

    def __repr__(self) -> str:
        return f"PriceHistory({len(self._prices)} observations, latest={self.latest})"


@dataclass
class Stock:
    """
    A tradeable stock.

    Attributes:
        symbol: Ticker (e.g. "AAPL")
        name: Company name
        price: Current price in dollars
        sector: Industry sector
        market_cap: Market capitalization in dollars
        daily_change: Last move in percent (e.g. -0.87)
        volume: Last sampled trading volume
        history: Every price the stock has had, starting with the seed price
    """
    symbol: str
    name: str
    price: Decimal
    sector: str
    market_cap: float
    daily_change: float = 0.0
    volume: int = INITIAL_VOLUME
    history: PriceHistory = field(default_factory=PriceHistory, repr=False, compare=False)

    def __post_init__(self):
        self.price = round_money(self.price)
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Stock symbol cannot be empty")
        if self.price <= 0:
            raise ValueError(f"Stock price must be positive, got {self.price}")

    @property
    def formatted_price(self) -> str:
        return f"${self.price:.2f}"

    @property
    def formatted_change(self) -> str:
        return f"{self.daily_change:+.2f}%"

    @property
    def formatted_volume(self) -> str:
        return f"{self.volume:,d}"


# (symbol, name, price, sector, market cap)
DEFAULT_STOCKS: Tuple[Tuple[str, str, str, str, float], ...] = (
    ("AAPL", "Apple Inc.", "175.25", "Technology", 2.7e12),
    ("GOOGL", "Alphabet Inc.", "138.75", "Technology", 1.7e12),
    ("MSFT", "Microsoft Corp.", "330.45", "Technology", 2.5e12),
    ("TSLA", "Tesla Inc.", "210.30", "Automotive", 650e9),
    ("AMZN", "Amazon.com Inc.", "145.80", "E-commerce", 1.5e12),
    ("JPM", "JPMorgan Chase", "155.60", "Finance", 450e9),
    ("NVDA", "NVIDIA Corp.", "485.25", "Technology", 1.2e12),
    ("META", "Meta Platforms", "320.10", "Technology", 820e9),
    ("V", "Visa Inc.", "240.75", "Finance", 500e9),
    ("JNJ", "Johnson & Johnson", "155.90", "Healthcare", 380e9),
)


def create_default_stocks(timestamp: datetime) -> List[Stock]:
    """Build fresh Stock objects from DEFAULT_STOCKS, each with its seed price recorded."""
    stocks = []
    for symbol, name, price, sector, market_cap in DEFAULT_STOCKS:
        stock = Stock(symbol, name, Decimal(price), sector, market_cap)
        stock.history.add_price(timestamp, stock.price)
        stocks.append(stock)
    return stocks


def random_walk_step(
    stock: Stock,
    rng: np.random.Generator,
    timestamp: datetime,
    volatility: float = MARKET_VOLATILITY,
) -> Stock:
    """
    Move a stock's price by a uniform random fraction in [-volatility, +volatility).

    Mutates the stock in place:
    - price *= 1 + change, rounded to cents (never below one cent)
    - daily_change = change in percent, rounded to 2 places
    - volume re-sampled uniformly from VOLUME_RANGE
    - the new price is appended to the history

    Args:
        stock: Stock to move
        rng: Seedable random source
        timestamp: Time of the observation
        volatility: Maximum fractional move per step

    Returns:
        The same stock, for chaining
    """
    change = float(rng.uniform(-volatility, volatility))
    new_price = round_money(stock.price * (Decimal(1) + to_decimal(change)))
    stock.price = max(new_price, Decimal("0.01"))
    stock.daily_change = round(change * 100, 2)
    stock.volume = int(rng.integers(VOLUME_RANGE[0], VOLUME_RANGE[1]))
    stock.history.add_price(timestamp, stock.price)
    return stock
