"""
clock.py - Simulation Clock

A single background thread that calls a tick callback at a fixed period.

The clock knows nothing about markets: whether a tick does anything is
decided by the callback (TradingLedger.tick_market checks its open flag).
There is no queue, so a slow tick simply delays the next one.

Stopping sets an event the thread waits on and joins the thread, so a
stopped clock never leaves a timer running.
"""

from __future__ import annotations
from typing import Callable, Optional
import threading

from .core import MARKET_TICK_SECONDS
from .log import get_logger


logger = get_logger(__name__)


class SimulationClock:
    """
    Periodic timer driving simulated updates.

    Example:
        clock = SimulationClock(ledger.tick_market, interval=2.0)
        clock.start()
        ...
        clock.stop()

        # or
        with SimulationClock(ledger.tick_market):
            ...
    """

    def __init__(
        self,
        on_tick: Callable[[], object],
        interval: float = MARKET_TICK_SECONDS,
        name: str = "simulation-clock",
    ):
        """
        Args:
            on_tick: Called once per period on the clock thread
            interval: Seconds between ticks (first tick fires immediately)
            name: Thread name, useful in logs
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.on_tick = on_tick
        self.interval = interval
        self.name = name
        self.tick_count = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Start ticking. Does nothing if already running."""
        with self._state_lock:
            if self.running:
                return
            # One event per run: a thread outliving a timed-out stop() keeps its own, already set.
            self._stop = threading.Event()
            self._thread = threading.Thread(target=self._run, args=(self._stop,), name=self.name, daemon=True)
            self._thread.start()
        logger.debug("%s started (interval=%ss)", self.name, self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop ticking and wait for the thread to exit.

        Safe to call from the tick callback itself (the join is skipped) and
        safe to call on a clock that never started.
        """
        with self._state_lock:
            self._stop.set()
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout if timeout is not None else max(self.interval * 2, 1.0))
        logger.debug("%s stopped after %d ticks", self.name, self.tick_count)

    def _run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.on_tick()
            except Exception:
                logger.exception("%s: tick failed", self.name)
            self.tick_count += 1
            if stop.wait(self.interval):
                break

    def __enter__(self) -> SimulationClock:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def __repr__(self) -> str:
        state = "running" if self.running else "stopped"
        return f"SimulationClock({self.name}, {state}, interval={self.interval}s, ticks={self.tick_count})"
