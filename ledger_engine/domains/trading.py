"""
trading.py - Stock trading ledger

One portfolio (cash balance, holdings, trade history) trading against a
simulated market of stocks.

Rules:
- buy:  quantity x price x (1 + TRADE_FEE_RATE) must not exceed the balance
- sell: quantity must not exceed the current holding
- holdings are positive integers; a position sold down to zero is removed
- every trade gets the next id from a monotonically increasing counter

The market is simulated: while open, each tick moves every price by a
bounded random walk. Ticks come from a SimulationClock or from calling
tick_market() directly (tests do the latter with a seeded generator).

The portfolio is snapshotted after every trade. Market prices are not
snapshotted; export_market_csv() writes them on request.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
import csv
import os

import numpy as np

from ..aggregates import holdings_value, portfolio_value
from ..clock import SimulationClock
from ..config import Settings, get_settings
from ..core import (
    DEFAULT_STARTING_BALANCE, MARKET_TICK_SECONDS, MARKET_VOLATILITY, TRADE_FEE_RATE,
    MutationResult,
    ValidationError, NotFound, InsufficientFunds, InsufficientHoldings,
    InvalidState, MalformedInput, PersistenceError,
    apply_rate, round_money,
)
from ..ledger import LedgerEngine, synchronized
from ..log import get_logger
from ..market import Stock, create_default_stocks, random_walk_step
from ..parsing import parse_decimal, parse_positive_int, parse_symbol
from ..snapshot import SnapshotRecord, read_legacy_portfolio
from ..store import RecordStore


logger = get_logger(__name__)

MARKET_CSV_HEADER = ("Symbol", "Name", "Price", "Change%", "Volume", "Sector", "MarketCap")

RandomSource = Union[np.random.Generator, int, None]


# ============================================================================
# DATA MODEL
# ============================================================================

class TradeSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True, slots=True)
class Trade:
    """
    An executed trade. Never modified after creation.

    Attributes:
        trade_id: Sequence number within the portfolio (1, 2, 3, ...)
        symbol: Stock traded
        side: BUY or SELL
        quantity: Shares traded (positive)
        price: Price per share at execution
        amount: Cash moved (cost of a buy, proceeds of a sale)
        timestamp: When the trade executed
    """
    trade_id: int
    symbol: str
    side: TradeSide
    quantity: int
    price: Decimal
    amount: Decimal
    timestamp: datetime

    def describe(self) -> str:
        """One-line summary, e.g. '14:03:07 - BUY 10 AAPL @ $175.25 ($1752.50)'."""
        return (
            f"{self.timestamp:%H:%M:%S} - {self.side.value} {self.quantity} {self.symbol} "
            f"@ ${self.price:.2f} (${self.amount:.2f})"
        )


@dataclass(frozen=True, slots=True)
class MarketTick:
    """Prices after one simulation step."""
    timestamp: datetime
    prices: Dict[str, Decimal]


# ============================================================================
# LEDGER
# ============================================================================

class TradingLedger(LedgerEngine):
    """
    Portfolio ledger trading against a simulated market.

    Mutations (also reachable through perform()):
        buy(symbol, quantity)
        sell(symbol, quantity)
        import_legacy(path)

    Aggregates (also reachable through aggregate()):
        portfolio_value(), holdings_value(), positions()

    Example:
        trading = TradingLedger(rng=42)
        trading.buy("AAPL", 10).record.amount  # Decimal("1752.50")
        trading.balance                        # Decimal("8247.50")
        trading.sell("AAPL", 15).error_kind    # ErrorKind.INSUFFICIENT_HOLDINGS
    """

    schema = "portfolio"

    def __init__(
        self,
        name: str = "portfolio",
        snapshot_path: Optional[os.PathLike] = None,
        starting_balance: Any = DEFAULT_STARTING_BALANCE,
        rng: RandomSource = None,
        volatility: float = MARKET_VOLATILITY,
        tick_interval: float = MARKET_TICK_SECONDS,
        now: Callable[[], datetime] = datetime.now,
        verbose: bool = True,
        autoload: bool = True,
    ):
        """
        Create a trading ledger.

        Args:
            name: Ledger identifier
            snapshot_path: Portfolio snapshot file (None = in-memory only)
            starting_balance: Cash of a fresh portfolio
            rng: numpy Generator or integer seed for the price walk (None = OS entropy)
            volatility: Maximum fractional price move per tick
            tick_interval: Seconds between ticks when the clock runs
            now: Clock used to timestamp trades and ticks
            verbose: Log mutations at INFO (default: True)
            autoload: Load the snapshot right away if the file exists (default: True)

        Raises:
            PersistenceError: If autoload finds a file that is unreadable, not a
                snapshot, or from another schema or a newer version. The file is
                left untouched; malformed record lines are skipped, not raised.
        """
        super().__init__(name, snapshot_path=snapshot_path, verbose=verbose)
        self.starting_balance = round_money(parse_decimal(starting_balance, "starting_balance"))
        self.rng = np.random.default_rng(rng)
        self.volatility = volatility
        self.tick_interval = tick_interval
        self._now = now

        self.stocks = RecordStore("stock", key=lambda stock: stock.symbol)
        for stock in create_default_stocks(self._now()):
            self.stocks.add(stock)
        self.market_open = True
        self.ticks_skipped = 0
        self._clock: Optional[SimulationClock] = None

        self.trades = RecordStore("trade", key=lambda trade: trade.trade_id)
        self.balance = self.starting_balance
        self.holdings: Dict[str, int] = {}
        self.next_trade_id = 1
        self._reset_state()

        self.register_mutation("buy", self._buy)
        self.register_mutation("sell", self._sell)
        self.register_aggregate("portfolio_value", self.portfolio_value)
        self.register_aggregate("holdings_value", self.holdings_value)
        self.register_aggregate("positions", self.positions)
        self._open(autoload)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> TradingLedger:
        """Trading ledger configured from Settings (data dir, balance, seed, market timing)."""
        settings = settings or get_settings()
        options = dict(
            snapshot_path=settings.portfolio_snapshot_path,
            starting_balance=settings.starting_balance,
            rng=settings.random_seed,
            volatility=settings.market_volatility,
            tick_interval=settings.market_tick_seconds,
        )
        options.update(kwargs)
        return cls(**options)

    # ========================================================================
    # QUERIES
    # ========================================================================

    @synchronized
    def list_resources(self) -> Tuple[Stock, ...]:
        return self.stocks.list_all()

    @synchronized
    def get_stock(self, symbol: str) -> Stock:
        return self.stocks.get(parse_symbol(symbol))

    @synchronized
    def search(
        self,
        sector: Optional[str] = None,
        min_price: Any = None,
        max_price: Any = None,
    ) -> Tuple[Stock, ...]:
        """Stocks in a sector (case-insensitive) and/or within a price band."""
        low = parse_decimal(min_price, "min_price") if min_price is not None else None
        high = parse_decimal(max_price, "max_price") if max_price is not None else None

        def matches(stock: Stock) -> bool:
            if sector is not None and stock.sector.lower() != sector.strip().lower():
                return False
            if low is not None and stock.price < low:
                return False
            if high is not None and stock.price > high:
                return False
            return True

        return self.stocks.find(matches)

    @synchronized
    def prices(self) -> Dict[str, Decimal]:
        return {stock.symbol: stock.price for stock in self.stocks}

    @synchronized
    def list_trades(self) -> Tuple[Trade, ...]:
        return self.trades.list_all()

    @synchronized
    def holding(self, symbol: str) -> int:
        return self.holdings.get(parse_symbol(symbol), 0)

    # ========================================================================
    # AGGREGATES
    # ========================================================================

    @synchronized
    def portfolio_value(self) -> Decimal:
        return portfolio_value(self.balance, self.holdings, self.prices())

    @synchronized
    def holdings_value(self) -> Dict[str, Decimal]:
        return holdings_value(self.holdings, self.prices())

    @synchronized
    def positions(self) -> List[Dict[str, Any]]:
        """Rows of symbol, quantity, price and value for every holding."""
        prices = self.prices()
        values = holdings_value(self.holdings, prices)
        return [
            {
                "symbol": symbol,
                "quantity": quantity,
                "price": prices.get(symbol),
                "value": values.get(symbol),
            }
            for symbol, quantity in sorted(self.holdings.items())
        ]

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def buy(self, symbol: str, quantity: Any) -> MutationResult:
        return self._mutate("buy", self._buy, symbol=symbol, quantity=quantity)

    def sell(self, symbol: str, quantity: Any) -> MutationResult:
        return self._mutate("sell", self._sell, symbol=symbol, quantity=quantity)

    def import_legacy(self, path: os.PathLike) -> MutationResult:
        """
        Replace the portfolio with one read from the legacy properties file.

        Trades there carry no price or time: the price is derived from
        amount / quantity and the import time is used. Malformed entries are
        skipped.

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        data = read_legacy_portfolio(path)
        if data is None:
            return self._reject("import_legacy", NotFound(f"legacy file {path} not found"))
        return self._mutate("import_legacy", self._import_legacy, data)

    def _buy(self, symbol: str, quantity: Any) -> Trade:
        symbol = parse_symbol(symbol)
        quantity = parse_positive_int(quantity, "quantity")
        stock = self.stocks.get(symbol)
        price = stock.price
        cost = apply_rate(price * quantity, TRADE_FEE_RATE)
        if cost > self.balance:
            raise InsufficientFunds(
                f"buying {quantity} {symbol} costs ${cost:.2f}, balance is ${self.balance:.2f}"
            )

        # All checks passed - apply.
        self.balance = self.balance - cost
        self.holdings[symbol] = self.holdings.get(symbol, 0) + quantity
        return self._record_trade(symbol, TradeSide.BUY, quantity, price, cost)

    def _sell(self, symbol: str, quantity: Any) -> Trade:
        symbol = parse_symbol(symbol)
        quantity = parse_positive_int(quantity, "quantity")
        stock = self.stocks.get(symbol)
        held = self.holdings.get(symbol, 0)
        if quantity > held:
            raise InsufficientHoldings(f"cannot sell {quantity} {symbol}, holding is {held}")
        price = stock.price
        proceeds = apply_rate(price * quantity, -TRADE_FEE_RATE)

        # All checks passed - apply.
        self.balance = self.balance + proceeds
        remaining = held - quantity
        if remaining == 0:
            del self.holdings[symbol]
        else:
            self.holdings[symbol] = remaining
        return self._record_trade(symbol, TradeSide.SELL, quantity, price, proceeds)

    def _record_trade(
        self, symbol: str, side: TradeSide, quantity: int, price: Decimal, amount: Decimal
    ) -> Trade:
        trade = Trade(
            trade_id=self.next_trade_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=price,
            amount=amount,
            timestamp=self._now(),
        )
        self.trades.add(trade)
        self.next_trade_id += 1
        return trade

    def _import_legacy(self, data: Dict[str, Any]) -> Tuple[Trade, ...]:
        balance_text = data.get("balance")
        if balance_text is None:
            raise MalformedInput("legacy portfolio has no balance")
        balance = round_money(parse_decimal(balance_text, "balance"))

        holdings: Dict[str, int] = {}
        for symbol, quantity in data["holdings"].items():
            try:
                holdings[symbol.upper()] = parse_positive_int(quantity)
            except MalformedInput:
                continue

        timestamp = self._now()
        trades: List[Trade] = []
        for entry in data["transactions"]:
            try:
                trade = _trade_from_legacy(len(trades) + 1, entry, timestamp)
            except (ValueError, InvalidOperation, ValidationError):
                continue
            trades.append(trade)

        try:
            legacy_next = int(data.get("next_transaction_id") or 1)
        except ValueError:
            legacy_next = 1

        # All checks passed - apply.
        self._reset_state()
        self.balance = balance
        self.holdings = holdings
        for trade in trades:
            self.trades.add(trade)
        self.next_trade_id = max(legacy_next, len(trades) + 1)
        return tuple(trades)

    # ========================================================================
    # MARKET SIMULATION
    # ========================================================================

    def tick_market(self) -> Optional[MutationResult]:
        """
        Apply one random-walk step to every stock if the market is open.

        A tick while closed only increments ticks_skipped and returns None.
        Applied ticks notify listeners but are not snapshotted.
        """
        with self._lock:
            if not self.market_open:
                self.ticks_skipped += 1
                return None
        return self._mutate("tick_market", self._tick, persist=False)

    def _tick(self) -> MarketTick:
        if not self.market_open:
            raise InvalidState("market is closed")
        timestamp = self._now()
        for stock in self.stocks:
            random_walk_step(stock, self.rng, timestamp, self.volatility)
        return MarketTick(timestamp, {stock.symbol: stock.price for stock in self.stocks})

    @synchronized
    def set_market_open(self, is_open: bool) -> bool:
        self.market_open = bool(is_open)
        self._log("%s: market %s", self.name, "OPEN" if self.market_open else "CLOSED")
        return self.market_open

    @synchronized
    def toggle_market(self) -> bool:
        """Flip the market between open and closed. Returns the new state."""
        return self.set_market_open(not self.market_open)

    @property
    def market_running(self) -> bool:
        return self._clock is not None and self._clock.running

    def start_market(self) -> SimulationClock:
        """Start the simulation clock (idempotent)."""
        with self._lock:
            if self._clock is None:
                self._clock = SimulationClock(
                    self.tick_market, interval=self.tick_interval, name=f"{self.name}-market"
                )
            clock = self._clock
        clock.start()
        return clock

    def stop_market(self, timeout: Optional[float] = None) -> None:
        """Stop the simulation clock and wait for its thread."""
        with self._lock:
            clock = self._clock
            self._clock = None
        if clock is not None:
            clock.stop(timeout)

    def close(self) -> None:
        self.stop_market()

    def __enter__(self) -> TradingLedger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ========================================================================
    # EXPORT
    # ========================================================================

    def export_market_csv(self, path: os.PathLike) -> Path:
        """
        Write the current market to CSV.

        Columns: Symbol,Name,Price,Change%,Volume,Sector,MarketCap

        Raises:
            PersistenceError: If the file cannot be written
        """
        path = Path(path)
        with self._lock:
            rows = [
                (
                    stock.symbol,
                    stock.name,
                    f"{stock.price:.2f}",
                    f"{stock.daily_change:.2f}",
                    str(stock.volume),
                    stock.sector,
                    f"{stock.market_cap:.0f}",
                )
                for stock in self.stocks
            ]
        try:
            with path.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle, lineterminator="\n")
                writer.writerow(MARKET_CSV_HEADER)
                writer.writerows(rows)
        except OSError as exc:
            raise PersistenceError(f"cannot export market data to {path}: {exc}") from exc
        logger.info("%s: exported %d stocks to %s", self.name, len(rows), path)
        return path

    # ========================================================================
    # SNAPSHOT HOOKS
    # ========================================================================

    def _reset_state(self) -> None:
        self.balance = self.starting_balance
        self.holdings = {}
        self.trades.clear()
        self.next_trade_id = 1

    def _snapshot_records(self) -> Iterable[SnapshotRecord]:
        yield {
            "type": "account",
            "balance": str(self.balance),
            "next_trade_id": self.next_trade_id,
        }
        for symbol, quantity in sorted(self.holdings.items()):
            yield {"type": "holding", "symbol": symbol, "quantity": quantity}
        for trade in self.trades:
            yield {
                "type": "trade",
                "trade_id": trade.trade_id,
                "symbol": trade.symbol,
                "side": trade.side.value,
                "quantity": trade.quantity,
                "price": str(trade.price),
                "amount": str(trade.amount),
                "timestamp": trade.timestamp.isoformat(),
            }

    def _restore_records(self, records: List[SnapshotRecord]) -> int:
        skipped = 0
        next_trade_id = 1
        for record in records:
            try:
                kind = record["type"]
                if kind == "account":
                    balance = round_money(Decimal(record["balance"]))
                    next_trade_id = max(next_trade_id, int(record["next_trade_id"]))
                    self.balance = balance
                elif kind == "holding":
                    symbol = parse_symbol(record["symbol"])
                    quantity = parse_positive_int(record["quantity"])
                    self.holdings[symbol] = quantity
                elif kind == "trade":
                    trade = _trade_from_record(record)
                    self.trades.add(trade)
                    next_trade_id = max(next_trade_id, trade.trade_id + 1)
                else:
                    skipped += 1
            except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError):
                skipped += 1
        self.next_trade_id = next_trade_id
        return skipped


def _trade_from_record(record: SnapshotRecord) -> Trade:
    quantity = parse_positive_int(record["quantity"])
    return Trade(
        trade_id=int(record["trade_id"]),
        symbol=parse_symbol(record["symbol"]),
        side=TradeSide(record["side"]),
        quantity=quantity,
        price=round_money(Decimal(record["price"])),
        amount=round_money(Decimal(record["amount"])),
        timestamp=datetime.fromisoformat(record["timestamp"]),
    )


def _trade_from_legacy(trade_id: int, entry: Dict[str, str], timestamp: datetime) -> Trade:
    quantity = parse_positive_int(entry["quantity"])
    amount = round_money(parse_decimal(entry["amount"]))
    return Trade(
        trade_id=trade_id,
        symbol=parse_symbol(entry["symbol"]),
        side=TradeSide(entry["side"].strip().upper()),
        quantity=quantity,
        price=round_money(amount / quantity),
        amount=amount,
        timestamp=timestamp,
    )
