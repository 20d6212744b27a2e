import typing
from dataclasses import FrozenInstanceError
from datetime import datetime
from decimal import Decimal

import pytest

from stock_exchange_observer.entities import EngineSettings, Instrument, LogEntry, SubscriberSpec, TradingRule


def test_log_entry_immutable():
    entry = LogEntry(datetime(2024, 1, 2, 9, 5, 7), "Stock added: AAPL at 180.50")
    with pytest.raises(FrozenInstanceError) as e_info:
        entry.__setattr__("message", "new_value")
    assert e_info.value.args[0] == "cannot assign to field 'message'"


def test_log_entry_str():
    entry = LogEntry(datetime(2024, 1, 2, 9, 5, 7), "Stock added: AAPL at 180.50")
    assert str(entry) == "[09:05:07] Stock added: AAPL at 180.50"


def test_instrument_mutable_unhashable():
    obj = Instrument("AAPL", Decimal("180.50"))
    assert not isinstance(obj, typing.Hashable)
    obj.price = Decimal("181")
    assert obj.price == Decimal("181")


def test_trading_rule_hashable():
    rule1 = TradingRule(Decimal("170"), Decimal("200"))
    rule2 = TradingRule(Decimal("170"), Decimal("200"))
    assert rule1 == rule2
    assert hash(rule1) == hash(rule2)


def test_defaults():
    settings = EngineSettings()
    assert settings.max_workers == 8
    assert settings.slow_delivery_seconds == 1.0
    assert settings.reject_non_positive_prices
    spec = SubscriberSpec(kind="trader", name="Alice")
    assert spec.symbols == ()
    assert spec.email is None
    assert spec.rules == {}


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"max_workers": "8"}, "max_workers must be a positive integer, got '8'"),
        ({"max_workers": 0}, "max_workers must be a positive integer, got 0"),
        ({"max_workers": True}, "max_workers must be a positive integer, got True"),
        ({"slow_delivery_seconds": "1.0"}, "slow_delivery_seconds must be a non-negative number or null, got '1.0'"),
        ({"slow_delivery_seconds": -1}, "slow_delivery_seconds must be a non-negative number or null, got -1"),
        ({"reject_non_positive_prices": "yes"}, "reject_non_positive_prices must be a boolean, got 'yes'"),
    ]
)
def test_engine_settings_rejects_bad_values(kwargs, message):
    with pytest.raises(ValueError) as e_info:
        EngineSettings(**kwargs)
    assert e_info.value.args[0] == message


def test_engine_settings_accepts_valid_values():
    settings = EngineSettings(max_workers=1, slow_delivery_seconds=2, reject_non_positive_prices=False)
    assert settings.slow_delivery_seconds == 2
    assert EngineSettings(slow_delivery_seconds=None).slow_delivery_seconds is None
