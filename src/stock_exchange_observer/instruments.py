"""This module contains class InstrumentTable which owns the current price of every instrument"""

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterator, List, Optional

from stock_exchange_observer.entities import Instrument


class InstrumentTable:
    """
    Mapping from symbol to Instrument with one lock per symbol.

    InstrumentTable state consists of:
        :_instruments: Dict[str, Instrument]: a mapping from symbol to the Instrument it represents
        :_locks: Dict[str, threading.RLock]: a mapping from symbol to the lock guarding its price
        :_guard: threading.Lock: protects insertion of new symbols only
    Single-key reads need no lock; a price transition that must observe its own previous value is made
    inside `locked(symbol)`, which serializes writers of the same symbol and never blocks other symbols.
    """

    def __init__(self):
        self._instruments: Dict[str, Instrument] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def add(self, symbol: str, price: Decimal) -> bool:
        """
        Insert an instrument or overwrite the price of an existing one

        :param symbol: str: symbol of the instrument
        :param price: Decimal: initial price
        :returns: bool: True if the symbol already existed and its price was overwritten

        """
        with self._guard:
            lock = self._locks.setdefault(symbol, threading.RLock())
        with lock:
            existing = self._instruments.get(symbol)
            if existing is not None:
                existing.price = price
                return True
            self._instruments[symbol] = Instrument(symbol=symbol, price=price)
            return False

    def get_price(self, symbol: str) -> Optional[Decimal]:
        """
        Return latest price of given symbol, or None if the symbol does not exist

        :param symbol: str: symbol to get price for

        """
        instrument = self._instruments.get(symbol)
        return None if instrument is None else instrument.price

    def replace_price(self, symbol: str, price: Decimal) -> Optional[Decimal]:
        """
        Swap the price of given symbol

        :param symbol: str: symbol to update
        :param price: Decimal: new price
        :returns: Optional[Decimal]: previous price, or None if the symbol does not exist

        """
        lock = self._locks.get(symbol)
        if lock is None:
            return None
        with lock:
            instrument = self._instruments[symbol]
            old_price, instrument.price = instrument.price, price
            return old_price

    @contextmanager
    def locked(self, symbol: str) -> Iterator[bool]:
        """
        Hold the lock of given symbol for the duration of the with-block.
        Yields whether the symbol exists, so callers can check and act atomically.

        :param symbol: str: symbol to lock

        """
        lock = self._locks.get(symbol)
        if lock is None:
            yield False
            return
        with lock:
            yield symbol in self._instruments

    def symbols(self) -> List[str]:
        """Return all symbols in the order they were first added"""
        with self._guard:
            return [symbol for symbol in self._locks if symbol in self._instruments]

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._instruments

    def __len__(self) -> int:
        return len(self._instruments)
