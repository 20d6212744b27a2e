import logging
from io import StringIO

import pytest
from pytest_mock import MockerFixture

from common.logging_adapter import KeyValContextLogger
from stock_exchange_observer.core import StockExchange
from stock_exchange_observer.entities import EngineSettings


# src/ is put on sys.path by the `pythonpath` option in pyproject.toml, the same root `python3 src/app.py` runs from


@pytest.fixture
def log_stream():
    return StringIO("")


@pytest.fixture
def string_logger(log_stream):
    formatter = logging.Formatter("level=%(levelname)s logger=%(name)s %(message)s")
    handler = logging.StreamHandler(stream=log_stream)
    handler.setLevel("DEBUG")
    handler.setFormatter(formatter)
    a_logger = logging.getLogger("string_logger")
    a_logger.propagate = False
    a_logger.setLevel("DEBUG")
    a_logger.handlers = [handler]
    return KeyValContextLogger(logger=a_logger)


@pytest.fixture
def patched_loggers(string_logger, mocker: MockerFixture):
    for module in ["core", "dispatcher", "shell"]:
        mocker.patch(f"stock_exchange_observer.{module}.get_configured_logger").return_value = string_logger
    return string_logger


@pytest.fixture
def engine_settings():
    return EngineSettings(max_workers=4, slow_delivery_seconds=None)


@pytest.fixture
def exchange(patched_loggers, engine_settings):
    with StockExchange(engine_settings) as an_exchange:
        yield an_exchange
