"""This module contains the class StockExchange which implements the core logic of the price notification engine"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from stock_exchange_observer.dispatcher import NotificationDispatcher
from stock_exchange_observer.entities import EngineSettings, LogEntry
from stock_exchange_observer.event_log import EventLog
from stock_exchange_observer.helpers import get_configured_logger, price_rejection_reason
from stock_exchange_observer.instruments import InstrumentTable
from stock_exchange_observer.registry import SubscriptionRegistry
from stock_exchange_observer.subscribers import Subscriber


class StockExchange:
    """
    An engine that:
        - Maintains the current price of every instrument
        - Maintains the subscribers of every instrument
        - Notifies the subscribers of an instrument, asynchronously, whenever its price changes

    StockExchange state consists of:
        :_settings: EngineSettings: pool size, slow delivery threshold and price policy
        :_event_log: EventLog: append-only audit log of every operation and delivery outcome
        :_instruments: InstrumentTable: a mapping from symbol to its Instrument
        :_registry: SubscriptionRegistry: a mapping from symbol to its subscribers
        :_dispatcher: NotificationDispatcher: runs the deliveries on worker threads

    No operation raises on a missing symbol, a duplicate subscription or a failed delivery: each is logged
    and reported to the caller as a False/None result, so the engine stays available under partial failure.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        """
        Initializes StockExchange with given settings.

        :param settings: Optional[EngineSettings]:  (Default value = None) engine settings, defaults if None

        """
        self.logger = get_configured_logger(self.__class__.__name__)
        self._settings = settings or EngineSettings()
        self._event_log = EventLog(logger=get_configured_logger(EventLog.__name__))
        self._instruments = InstrumentTable()
        self._registry = SubscriptionRegistry(self._instruments, self._event_log)
        self._dispatcher = NotificationDispatcher(self._registry, self._event_log, self._settings)

    def __enter__(self) -> "StockExchange":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def _rejection(self, price: Decimal) -> Optional[str]:
        return price_rejection_reason(price, reject_non_positive=self._settings.reject_non_positive_prices)

    def add_instrument(self, symbol: str, price: Decimal) -> bool:
        """
        Add an instrument, or overwrite the price of an existing one without notifying anybody

        :param symbol: str: symbol of the instrument
        :param price: Decimal: initial price
        :returns: bool: False if the price was rejected by the price policy

        """
        reason = self._rejection(price)
        if reason is not None:
            self._event_log.append(f"AddStock failed: {symbol} rejected, {reason}")
            return False
        overwritten = self._instruments.add(symbol, price)
        self._registry.open(symbol)
        if overwritten:
            self._event_log.append(f"Stock re-added: {symbol} price reset to {price}")
        else:
            self._event_log.append(f"Stock added: {symbol} at {price}")
        return True

    def has_instrument(self, symbol: str) -> bool:
        return symbol in self._instruments

    def get_price(self, symbol: str) -> Optional[Decimal]:
        """
        Return latest price of given symbol, or None if the symbol does not exist

        :param symbol: str: symbol to get price for

        """
        price = self._instruments.get_price(symbol)
        if price is None:
            self.logger.debug("instrument not found", symbol=symbol)
        return price

    def update_price(self, symbol: str, price: Decimal) -> bool:
        """
        Set a new price for given symbol and notify its subscribers:
            - the previous price, the log entry and the dispatch are consistent under the lock of the symbol,
              so concurrent updates of the same symbol serialize and each logs its true predecessor
            - notifications are published even if the new price equals the existing price
            - returns as soon as deliveries are scheduled

        :param symbol: str: symbol to update
        :param price: Decimal: new price
        :returns: bool: False if the symbol is unknown or the price was rejected

        """
        reason = self._rejection(price)
        if reason is not None:
            self._event_log.append(f"UpdatePrice failed: {symbol} rejected, {reason}")
            return False
        with self._instruments.locked(symbol) as exists:
            if not exists:
                self._event_log.append(f"UpdatePrice failed: stock {symbol} not found.")
                return False
            old_price = self._instruments.replace_price(symbol, price)
            self._event_log.append(f"Price for {symbol} changed from {old_price} to {price}")
            self._dispatcher.dispatch(symbol, price)
        return True

    def register(self, symbol: str, subscriber: Subscriber) -> bool:
        """Subscribe given subscriber to price updates of given symbol; see SubscriptionRegistry.register"""
        return self._registry.register(symbol, subscriber)

    def remove(self, symbol: str, subscriber: Subscriber) -> bool:
        """Unsubscribe given subscriber from given symbol; see SubscriptionRegistry.remove"""
        return self._registry.remove(symbol, subscriber)

    def find_by_name(self, symbol: str, name: str) -> Optional[Subscriber]:
        return self._registry.find_by_name(symbol, name)

    def subscribers(self, symbol: str) -> List[Subscriber]:
        return self._registry.snapshot(symbol)

    def list_symbols(self) -> List[str]:
        return self._instruments.symbols()

    def subscribers_report(self) -> Dict[str, List[Tuple[str, int]]]:
        """Return a mapping from every symbol to (name, delivery count) of each of its subscribers"""
        return self._registry.report()

    def dump_log(self) -> List[LogEntry]:
        return self._event_log.dump()

    def wait_for_deliveries(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every delivery scheduled so far has finished

        :param timeout: Optional[float]:  (Default value = None) maximum seconds to wait, None waits forever
        :returns: bool: True if all deliveries finished in time

        """
        return self._dispatcher.wait_for_deliveries(timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the delivery workers; further price updates still apply but notify nobody"""
        self._dispatcher.shutdown(wait_for_pending=wait)
