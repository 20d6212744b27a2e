"""This module holds helper functions for the stock exchange engine"""

import json
import logging
import logging.config
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from common.logging_adapter import KeyValContextLogger
from stock_exchange_observer.entities import Config, EngineSettings, SubscriberSpec, TradingRule

SUBSCRIBER_KINDS = ("trader", "email", "robot")


def parse_price(raw: Any) -> Decimal:
    """
    Convert a raw value (text from the shell or a JSON scalar) into a Decimal price

    :param raw: Any: str, int or float holding a price
    :returns: Decimal: parsed price
    :raises: ValueError: if the value is not a finite decimal number

    """
    if isinstance(raw, bool):
        raise ValueError(f"Invalid price: {raw!r}")
    try:
        # go through str so that floats from JSON keep their printed value, e.g. 180.5 and not 180.4999...
        price = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid price: {raw!r}") from e
    if not price.is_finite():
        raise ValueError(f"Invalid price: {raw!r}")
    return price


def price_rejection_reason(price: Decimal, reject_non_positive: bool = True) -> Optional[str]:
    """
    Check given price against the price policy of the engine

    :param price: Decimal: candidate price
    :param reject_non_positive: bool:  (Default value = True) whether zero and negative prices are invalid
    :returns: Optional[str]: reason of rejection, or None if the price is acceptable

    """
    if not isinstance(price, Decimal) or not price.is_finite():
        return f"price must be a finite decimal, got {price!r}"
    if reject_non_positive and price <= 0:
        return f"price must be positive, got {price}"
    return None


def _load_rules(symbol_rules: Dict[str, Dict[str, Any]]) -> Dict[str, TradingRule]:
    rules = {}
    for symbol, rule in symbol_rules.items():
        rules[symbol.upper()] = TradingRule(
            buy_below=parse_price(rule["buy_below"]), sell_above=parse_price(rule["sell_above"]))
    return rules


def _load_subscribers(subscribers_json: List[Dict[str, Any]]) -> List[SubscriberSpec]:
    specs = []
    for item in subscribers_json:
        kind = item["type"]
        if kind not in SUBSCRIBER_KINDS:
            raise ValueError(f"Unknown subscriber type: {kind}, expected one of {', '.join(SUBSCRIBER_KINDS)}")
        specs.append(SubscriberSpec(
            kind=kind,
            name=item["name"],
            symbols=tuple(symbol.upper() for symbol in item.get("symbols", [])),
            email=item.get("email"),
            rules=_load_rules(item.get("rules", {}))
        ))
    return specs


def load_exchange_config(config_path: str) -> Config:
    """
    Load config for the stock exchange from given JSON file

    :param config_path: str: path to config JSON file
    :returns: Instance of Config
    :raises: ValueError: if the file is not valid JSON or holds invalid values

    """
    with open(config_path, encoding='utf-8') as fp:
        try:
            config_json = json.load(fp)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}") from e
    try:
        instruments = {
            symbol.upper(): parse_price(price) for symbol, price in config_json.get("instruments", {}).items()
        }
        subscribers = _load_subscribers(config_json.get("subscribers", []))
        settings = EngineSettings(**config_json.get("engine", {}))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid config in {config_path}: {e!r}") from e
    for symbol, price in instruments.items():
        reason = price_rejection_reason(price, reject_non_positive=settings.reject_non_positive_prices)
        if reason is not None:
            raise ValueError(f"Invalid price for {symbol} in {config_path}: {reason}")
    return Config(instruments=instruments, subscribers=subscribers, settings=settings)


def get_configured_logger(name: str, config_path: str = "config/logging_dict_config.json") -> KeyValContextLogger:
    """
    Create a KeyValContextLogger instance using given logger if configured in dict config JSON file

    :param name: str: name of logger in dict config
    :param config_path: str: path to JSON file containing dict config
    :returns: Instance of KeyValContextLogger
    :raises: ValueError: if given logger name is not configured in logging dict config

    """
    with open(config_path, encoding='utf-8') as fp:
        config_json = json.load(fp)
    if name not in config_json["loggers"]:
        raise ValueError(f"Logger not configured in {config_path}: {name}")
    logging.config.dictConfig(config_json)
    return KeyValContextLogger(logger=logging.getLogger(name))
