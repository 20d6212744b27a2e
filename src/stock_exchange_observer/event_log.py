"""This module contains class EventLog - the append-only audit log of the stock exchange"""

import threading
from datetime import datetime
from typing import List, Optional

from common.logging_adapter import KeyValContextLogger
from stock_exchange_observer.entities import LogEntry


class EventLog:
    """
    Thread-safe, append-only sequence of timestamped entries.

    Every operation of the engine and every delivery outcome appends here, from any thread.
    The lock is held only for the append itself and for copying the entries in `dump`.
    Each entry is mirrored to the structured logger, if one is given.
    """

    def __init__(self, logger: Optional[KeyValContextLogger] = None):
        self.logger = logger
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()

    def append(self, message: str) -> LogEntry:
        """
        Append a new entry stamped with the current local time

        :param message: str: text of the entry
        :returns: LogEntry: the appended entry

        """
        entry = LogEntry(timestamp=datetime.now(), message=message)
        with self._lock:
            self._entries.append(entry)
        if self.logger is not None:
            self.logger.info(message)
        return entry

    def dump(self) -> List[LogEntry]:
        """Return a point-in-time copy of all entries, oldest first"""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
