"""This module contains class NotificationDispatcher which fans a price change out to subscribers"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from decimal import Decimal
from typing import List, Optional, Set

from stock_exchange_observer.entities import EngineSettings
from stock_exchange_observer.event_log import EventLog
from stock_exchange_observer.helpers import get_configured_logger
from stock_exchange_observer.registry import SubscriptionRegistry
from stock_exchange_observer.subscribers import Subscriber


class NotificationDispatcher:
    """
    Delivers price changes to subscribers on a pool of worker threads.

    NotificationDispatcher state consists of:
        :_registry: SubscriptionRegistry: source of the subscriber snapshot of a symbol
        :_event_log: EventLog: audit log every delivery outcome is appended to
        :_executor: ThreadPoolExecutor: pool running the deliveries
        :_pending: Set[Future]: deliveries submitted and not yet finished
        :_slow_delivery_seconds: Optional[float]: threshold above which a finished delivery is logged as slow

    Dispatch is fire-and-forget: it returns as soon as one delivery per subscriber is submitted.
    Each delivery contains its own failure, so a broken subscriber affects neither its peers nor the caller.
    """

    def __init__(self, registry: SubscriptionRegistry, event_log: EventLog, settings: Optional[EngineSettings] = None):
        settings = settings or EngineSettings()
        self.logger = get_configured_logger(self.__class__.__name__)
        self._registry = registry
        self._event_log = event_log
        self._slow_delivery_seconds = settings.slow_delivery_seconds
        self._executor = ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="delivery")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        self._closed = False

    def dispatch(self, symbol: str, price: Decimal) -> List[Future]:
        """
        Schedule one delivery of the new price per current subscriber of given symbol, without waiting for them

        :param symbol: str: symbol whose price changed
        :param price: Decimal: new price
        :returns: List[Future]: one future per scheduled delivery, each resolving to True on success

        """
        subscribers = self._registry.snapshot(symbol)
        if not subscribers:
            self.logger.debug("no subscribers to notify", symbol=symbol, price=price)
            return []
        with self._pending_lock:
            if self._closed:
                self._event_log.append(f"Notify skipped: dispatcher is shut down ({symbol}={price})")
                return []
            futures = [self._executor.submit(self._deliver, subscriber, symbol, price) for subscriber in subscribers]
            self._pending.update(futures)
        for future in futures:
            future.add_done_callback(self._discard)
        self.logger.info("scheduled deliveries", symbol=symbol, price=price, subscriber_count=len(futures))
        return futures

    def _discard(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _deliver(self, subscriber: Subscriber, symbol: str, price: Decimal) -> bool:
        """
        Run a single delivery and record its outcome. Never raises.

        :param subscriber: Subscriber: target of the delivery
        :param symbol: str: symbol whose price changed
        :param price: Decimal: new price
        :returns: bool: True if the subscriber handled the notification

        """
        started = time.monotonic()
        try:
            subscriber.deliver(symbol, price)
        except Exception as e:
            self._event_log.append(f"Error notifying '{subscriber.name}' about {symbol}: {e}")
            self.logger.error("delivery failed", subscriber=subscriber.name, symbol=symbol, price=price)
            delivered = False
        else:
            count = subscriber.record_delivery()
            self._event_log.append(f"Notified '{subscriber.name}' about {symbol}={price}")
            self.logger.debug("delivered", subscriber=subscriber.name, symbol=symbol, price=price,
                              delivery_count=count)
            delivered = True
        # outcome is recorded before the slow check runs
        self._check_slow(subscriber, symbol, time.monotonic() - started)
        return delivered

    def _check_slow(self, subscriber: Subscriber, symbol: str, elapsed: float) -> None:
        if self._slow_delivery_seconds is None or elapsed <= self._slow_delivery_seconds:
            return
        self._event_log.append(f"Slow delivery to '{subscriber.name}' about {symbol}: took {elapsed:.2f}s")
        self.logger.warning("slow delivery", subscriber=subscriber.name, symbol=symbol,
                            elapsed=f"{elapsed:.3f}", threshold=self._slow_delivery_seconds)

    def wait_for_deliveries(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every delivery scheduled so far has finished

        :param timeout: Optional[float]:  (Default value = None) maximum seconds to wait, None waits forever
        :returns: bool: True if all deliveries finished in time

        """
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            self.logger.warning("deliveries still running", count=len(not_done), timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        """
        Stop accepting new deliveries and release the worker threads. Safe to call multiple times.

        :param wait_for_pending: bool:  (Default value = True) block until running deliveries finish

        """
        with self._pending_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait_for_pending)
        self.logger.info("dispatcher shut down", waited=wait_for_pending)
