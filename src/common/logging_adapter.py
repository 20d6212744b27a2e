"""This module contains class KeyValContextLogger - a custom adapter derived from logging.LoggerAdapter"""

import logging
import sys
import threading
from typing import Any, Tuple


class KeyValContextLogger(logging.LoggerAdapter):
    """
    Custom LoggerAdapter that renders a log record as a series of key-value pairs and injects context into it.

    Context comes from two places:
        - :extra: dict: context owned by this adapter (e.g. correlation id of the command being processed)
        - bound context: extra keys fixed at creation time by `bind`, used to tag a component or a worker
    The name of the emitting thread is added when the record is emitted from a thread other than main,
    since deliveries run on worker threads.
    """

    def __init__(self, logger, **kwargs):
        super(KeyValContextLogger, self).__init__(logger, extra=kwargs)

    def bind(self, **context) -> "KeyValContextLogger":
        """
        Create a new adapter over the same logger with given context merged on top of the current context

        :param context: key-value pairs to add to every record of the new adapter
        :returns: a new KeyValContextLogger instance; this instance is left untouched

        """
        merged = dict(self.extra)
        merged.update(context)
        return KeyValContextLogger(self.logger, **merged)

    def process(self, message, kwargs) -> Tuple[str, dict[str, Any]]:
        """
        Override logging.LoggerAdapter.process to format the log message as key-values pairs

        :param message: logging message
        :param kwargs: keyword arguments
        :returns: tuple of key-value formatted message and dict of reserved kwargs
        """
        reserved_keys = ["exc_info", "extra", "stack_info"]
        reserved_kwargs = {k: kwargs.pop(k) for k in reserved_keys if k in kwargs}
        log_params = dict(event=message)
        if isinstance(kwargs, dict):
            log_params.update(kwargs)
        log_params.update(self.extra)
        current = threading.current_thread()
        if current is not threading.main_thread():
            log_params["thread"] = current.name
        kv_msg = " ".join([f'{k}="{v}"' for (k, v) in log_params.items()])
        return kv_msg, reserved_kwargs

    def error(self, msg, *args, **kwargs) -> None:
        """
        Handle error and exception calls by examining sys.exc_info

        :param msg: error log message
        :param args: additional positional arguments to be delegated to super
        :param kwargs:  keyword arguments to be delegated to super

        """
        _type, _value, _traceback = sys.exc_info()
        if _type is not None:
            kwargs["error_type"] = _type.__name__
            kwargs["error_message"] = _value
            super(KeyValContextLogger, self).exception(msg, *args, **kwargs)
        else:
            super(KeyValContextLogger, self).error(msg, *args, **kwargs)

    def exception(self, msg, *args, exc_info=False, **kwargs):
        """
        Delegates to method error of self

        :param msg: log message
        :param args: additional positional arguments to be delegated
        :param exc_info:  (Default value = False) Ignored
        :param kwargs: keyword arguments to be delegated

        """
        self.error(msg, *args, **kwargs)
