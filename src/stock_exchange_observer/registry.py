"""This module contains class SubscriptionRegistry which tracks who listens to which instrument"""

import threading
from typing import Dict, List, Optional, Tuple

from stock_exchange_observer.event_log import EventLog
from stock_exchange_observer.instruments import InstrumentTable
from stock_exchange_observer.subscribers import Subscriber


class SubscriptionRegistry:
    """
    Mapping from symbol to the ordered list of its subscribers, each list guarded by its own lock.

    SubscriptionRegistry state consists of:
        :_instruments: InstrumentTable: the table a symbol must exist in before anyone can subscribe to it
        :_event_log: EventLog: audit log every mutation and rejection is appended to
        :_subscribers: Dict[str, List[Subscriber]]: a mapping from symbol to its subscribers in registration order
        :_locks: Dict[str, threading.Lock]: a mapping from symbol to the lock guarding its list
        :_guard: threading.Lock: protects creation of new lists only

    Membership is by identity: two subscribers with the same name are distinct entries, the same instance
    is never listed twice for one symbol.
    """

    def __init__(self, instruments: InstrumentTable, event_log: EventLog):
        self._instruments = instruments
        self._event_log = event_log
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def open(self, symbol: str) -> None:
        """
        Make sure a subscriber list exists for given symbol. No-op if it already exists.

        :param symbol: str: symbol to open a list for

        """
        with self._guard:
            if symbol not in self._subscribers:
                self._subscribers[symbol] = []
                self._locks[symbol] = threading.Lock()

    def _list_and_lock(self, symbol: str) -> Tuple[Optional[List[Subscriber]], Optional[threading.Lock]]:
        with self._guard:
            return self._subscribers.get(symbol), self._locks.get(symbol)

    def register(self, symbol: str, subscriber: Subscriber) -> bool:
        """
        Register a subscriber to price updates of given symbol

        :param symbol: str: symbol to subscribe to
        :param subscriber: Subscriber: subscriber to add
        :returns: bool: True if added, False if the symbol is unknown or the subscriber is already registered

        """
        if symbol not in self._instruments:
            self._event_log.append(f"Register failed: stock {symbol} not found for observer {subscriber.name}")
            return False
        self.open(symbol)
        subscribers, lock = self._list_and_lock(symbol)
        with lock:
            if any(existing is subscriber for existing in subscribers):
                self._event_log.append(f"Observer '{subscriber.name}' already registered to {symbol}")
                return False
            subscribers.append(subscriber)
            self._event_log.append(f"Observer '{subscriber.name}' registered to {symbol}")
        return True

    def remove(self, symbol: str, subscriber: Subscriber) -> bool:
        """
        Remove a subscriber from given symbol. The subscriber itself is left untouched.

        :param symbol: str: symbol to unsubscribe from
        :param subscriber: Subscriber: subscriber to remove
        :returns: bool: True if removed, False if the symbol is unknown or the subscriber was not registered

        """
        subscribers, lock = self._list_and_lock(symbol)
        if subscribers is None:
            self._event_log.append(f"Remove failed: stock {symbol} not found for observer {subscriber.name}")
            return False
        with lock:
            for index, existing in enumerate(subscribers):
                if existing is subscriber:
                    del subscribers[index]
                    self._event_log.append(f"Observer '{subscriber.name}' removed from {symbol}")
                    return True
            self._event_log.append(f"Observer '{subscriber.name}' not found in subscribers of {symbol}")
        return False

    def snapshot(self, symbol: str) -> List[Subscriber]:
        """
        Return a point-in-time copy of the subscribers of given symbol, in registration order.
        Unknown symbols and symbols without subscribers yield an empty list.

        :param symbol: str: symbol to snapshot

        """
        subscribers, lock = self._list_and_lock(symbol)
        if subscribers is None:
            return []
        with lock:
            return list(subscribers)

    def find_by_name(self, symbol: str, name: str) -> Optional[Subscriber]:
        """
        Look up a subscriber of given symbol by name, ignoring case.
        When several subscribers share the name, the earliest registered one is returned.

        :param symbol: str: symbol to search in
        :param name: str: name of the subscriber

        """
        wanted = name.casefold()
        for subscriber in self.snapshot(symbol):
            if subscriber.name.casefold() == wanted:
                return subscriber
        return None

    def report(self) -> Dict[str, List[Tuple[str, int]]]:
        """Return a mapping from every symbol to (name, delivery count) of each of its subscribers"""
        with self._guard:
            symbols = list(self._subscribers)
        return {
            symbol: [(subscriber.name, subscriber.delivery_count) for subscriber in self.snapshot(symbol)]
            for symbol in symbols
        }
