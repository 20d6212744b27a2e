"""This module contains the subscriber capability invoked by the dispatcher and its three variants"""

import threading
from abc import ABC, abstractmethod
from collections import deque
from decimal import Decimal
from typing import Deque, Dict, Optional, TextIO, Tuple

from stock_exchange_observer.entities import Signal, TradingRule

# most recent entries kept in the per-subscriber histories
HISTORY_SIZE = 100


class DeliveryError(Exception):
    """Raised by a subscriber when it fails to handle a price-change notification"""


class Subscriber(ABC):
    """
    A target of price-change notifications.

    Subscribers are owned by whoever creates them; the registry only references them, so one instance
    may be registered on several symbols and receive deliveries from several worker threads at once.
    A delivery is successful when `deliver` returns, and failed when it raises.
    """

    def __init__(self, name: str, out_stream: Optional[TextIO] = None):
        self.name = name
        self.out_stream = out_stream
        self._delivery_count = 0
        self._count_lock = threading.Lock()

    @property
    def delivery_count(self) -> int:
        """Number of notifications successfully delivered to this subscriber"""
        return self._delivery_count

    def record_delivery(self) -> int:
        """Increment the delivery counter and return its new value"""
        with self._count_lock:
            self._delivery_count += 1
            return self._delivery_count

    @abstractmethod
    def deliver(self, symbol: str, price: Decimal) -> None:
        """
        React to a new price of given symbol

        :param symbol: str: symbol whose price changed
        :param price: Decimal: new price
        :raises: DeliveryError (or any other exception): if the notification could not be handled

        """

    def publish(self, message: str) -> None:
        """
        Write given message to the output stream of this subscriber, if any

        :param message: str: text to publish

        """
        if self.out_stream is not None:
            print(message, file=self.out_stream)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, delivery_count={self._delivery_count})"


class Trader(Subscriber):
    """Pass-through observer that records every update it receives"""

    def __init__(self, name: str, out_stream: Optional[TextIO] = None):
        super().__init__(name, out_stream)
        self.received: Deque[Tuple[str, Decimal]] = deque(maxlen=HISTORY_SIZE)

    def deliver(self, symbol: str, price: Decimal) -> None:
        self.received.append((symbol, price))
        self.publish(f"{self.name}: received update - {symbol} = {price}")


class EmailNotifier(Subscriber):
    """Simulates sending an e-mail for every update"""

    def __init__(self, name: str, email: str, out_stream: Optional[TextIO] = None):
        super().__init__(name, out_stream)
        self.email = email
        self.sent: Deque[str] = deque(maxlen=HISTORY_SIZE)

    def deliver(self, symbol: str, price: Decimal) -> None:
        if not self.email or not self.email.strip():
            raise DeliveryError(f"no e-mail address configured for {self.name}")
        body = f"{symbol}={price}"
        self.sent.append(body)
        self.publish(f"{self.name}: e-mail sent to {self.email} about {body}")


class TradingRobot(Subscriber):
    """
    Rule-based subscriber holding a (buy_below, sell_above) pair per symbol.

    A price at or below buy_below is a BUY signal, at or above sell_above a SELL signal, anything in between
    is HOLD. Symbols without a rule yield NO_RULE.
    """

    def __init__(self, name: str, out_stream: Optional[TextIO] = None):
        super().__init__(name, out_stream)
        self._rules: Dict[str, TradingRule] = {}
        self._last_signals: Dict[str, Signal] = {}
        self.signals: Deque[Tuple[str, Decimal, Signal]] = deque(maxlen=HISTORY_SIZE)
        self._lock = threading.Lock()

    def set_rule(self, symbol: str, buy_below: Decimal, sell_above: Decimal) -> None:
        """
        Set or replace the rule for given symbol

        :param symbol: str: symbol the rule applies to
        :param buy_below: Decimal: buy when price <= this threshold
        :param sell_above: Decimal: sell when price >= this threshold
        :raises: ValueError: if buy_below is not below sell_above

        """
        if buy_below >= sell_above:
            raise ValueError(f"buy threshold {buy_below} must be below sell threshold {sell_above}")
        with self._lock:
            self._rules[symbol] = TradingRule(buy_below=buy_below, sell_above=sell_above)

    def get_rule(self, symbol: str) -> Optional[TradingRule]:
        with self._lock:
            return self._rules.get(symbol)

    def evaluate(self, symbol: str, price: Decimal) -> Signal:
        """
        Classify given price against the rule of given symbol

        :param symbol: str: symbol whose price changed
        :param price: Decimal: new price
        :returns: Signal: BUY, SELL, HOLD, or NO_RULE when no rule is set for the symbol

        """
        rule = self.get_rule(symbol)
        if rule is None:
            return Signal.NO_RULE
        if price <= rule.buy_below:
            return Signal.BUY
        if price >= rule.sell_above:
            return Signal.SELL
        return Signal.HOLD

    def last_signal(self, symbol: str) -> Optional[Signal]:
        with self._lock:
            return self._last_signals.get(symbol)

    def deliver(self, symbol: str, price: Decimal) -> None:
        signal = self.evaluate(symbol, price)
        with self._lock:
            self._last_signals[symbol] = signal
            self.signals.append((symbol, price, signal))
        rule = self.get_rule(symbol)
        if signal is Signal.BUY:
            self.publish(f"{self.name}: BUY condition met for {symbol} (price={price} <= {rule.buy_below}). Buying.")
        elif signal is Signal.SELL:
            self.publish(f"{self.name}: SELL condition met for {symbol} (price={price} >= {rule.sell_above}). Selling.")
        elif signal is Signal.HOLD:
            self.publish(f"{self.name}: watching {symbol}={price}, no conditions met.")
        else:
            self.publish(f"{self.name}: no rules for {symbol}. Ignoring.")


def create_subscriber(
        kind: str,
        name: str,
        out_stream: Optional[TextIO] = None,
        email: Optional[str] = None
) -> Subscriber:
    """
    Create a subscriber of given kind

    :param kind: str: one of "trader", "email", "robot"
    :param name: str: display name of the subscriber
    :param out_stream: Optional[TextIO]:  (Default value = None) stream the subscriber publishes its messages to
    :param email: Optional[str]:  (Default value = None) address, required for kind "email"
    :returns: Subscriber: new instance
    :raises: ValueError: if kind is unknown or an e-mail notifier has no address

    """
    if kind == "trader":
        return Trader(name, out_stream)
    if kind == "email":
        if not email:
            raise ValueError(f"E-mail address required for subscriber: {name}")
        return EmailNotifier(name, email, out_stream)
    if kind == "robot":
        return TradingRobot(name, out_stream)
    raise ValueError(f"Unknown subscriber type: {kind}")
