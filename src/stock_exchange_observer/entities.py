"""This module contains entity-definitions that constitute the data and state of the stock exchange engine"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

DEFAULT_MAX_WORKERS = 8
DEFAULT_SLOW_DELIVERY_SECONDS = 1.0


@dataclass(frozen=False)
class Instrument:
    """
    Instrument represents a named tradable entity and its latest price.
    This class is mutable as the price keeps changing; it is only mutated under the lock of its symbol.
    """
    symbol: str
    price: Decimal


@dataclass(frozen=True)
class LogEntry:
    """
    LogEntry is a single line of the audit log of the exchange.
    It is immutable once appended.
    """
    timestamp: datetime
    message: str

    def __str__(self) -> str:
        return f"[{self.timestamp:%H:%M:%S}] {self.message}"


@dataclass(frozen=True)
class TradingRule:
    """Price thresholds a trading robot reacts to for one symbol"""
    buy_below: Decimal
    sell_above: Decimal


class Signal(Enum):
    """Outcome of evaluating a price against a trading rule"""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    NO_RULE = "NO_RULE"


@dataclass(frozen=True)
class EngineSettings:
    """
    Tunables of the engine:
        - max_workers: size of the delivery thread pool
        - slow_delivery_seconds: deliveries running longer than this are logged as slow; None disables the check
        - reject_non_positive_prices: reject zero and negative prices on add and update
    """
    max_workers: int = DEFAULT_MAX_WORKERS
    slow_delivery_seconds: Optional[float] = DEFAULT_SLOW_DELIVERY_SECONDS
    reject_non_positive_prices: bool = True

    def __post_init__(self):
        """
        Validate field types, since settings usually come from a JSON file

        :raises: ValueError: if a field has the wrong type or is out of range

        """
        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ValueError(f"max_workers must be a positive integer, got {self.max_workers!r}")
        if self.slow_delivery_seconds is not None and (
                isinstance(self.slow_delivery_seconds, bool)
                or not isinstance(self.slow_delivery_seconds, (int, float))
                or self.slow_delivery_seconds < 0):
            raise ValueError(
                f"slow_delivery_seconds must be a non-negative number or null, got {self.slow_delivery_seconds!r}")
        if not isinstance(self.reject_non_positive_prices, bool):
            raise ValueError(
                f"reject_non_positive_prices must be a boolean, got {self.reject_non_positive_prices!r}")


@dataclass(frozen=True)
class SubscriberSpec:
    """Declarative definition of a subscriber to create at startup"""
    kind: str
    name: str
    symbols: Tuple[str, ...] = ()
    email: Optional[str] = None
    rules: Dict[str, TradingRule] = field(default_factory=dict, hash=False)


@dataclass(frozen=False)
class Config:
    """
    Config models the initial state of the exchange: instruments with their opening prices,
    the subscribers to create and register, and engine settings.
    """
    instruments: Dict[str, Decimal]
    subscribers: List[SubscriberSpec] = field(default_factory=list)
    settings: EngineSettings = field(default_factory=EngineSettings)
