"""This module contains the class ExchangeShell, a line-oriented command interface over StockExchange"""

import shlex
import uuid
from typing import Callable, Dict, Optional, TextIO

from stock_exchange_observer.core import StockExchange
from stock_exchange_observer.entities import Config
from stock_exchange_observer.helpers import get_configured_logger, parse_price
from stock_exchange_observer.subscribers import EmailNotifier, Subscriber, Trader, TradingRobot, create_subscriber

SUBSCRIBER_CLASSES = {"trader": Trader, "email": EmailNotifier, "robot": TradingRobot}

HELP_TEXT = """Available commands:
  list                                        show stocks and prices
  add SYMBOL PRICE                            add a new stock
  update SYMBOL PRICE                         update the price of a stock
  subscribe trader SYMBOL NAME                subscribe a trader to a stock
  subscribe email SYMBOL NAME EMAIL           subscribe an e-mail notifier to a stock
  subscribe robot SYMBOL NAME [BUY SELL]      subscribe a trading robot, optionally with a rule
  unsubscribe SYMBOL NAME                     remove a subscriber from a stock
  report                                      show subscribers report
  log                                         show event log
  quit                                        exit
Names containing spaces must be quoted, e.g. subscribe trader AAPL 'Trader Alice'"""


class ExchangeShell:
    """
    A Shell that:
        - Reads commands from an input stream, one per line, until `quit` or end of stream
        - Translates raw text into typed calls on a StockExchange
        - Writes results and subscriber messages to an output stream

    ExchangeShell state consists of:
        :exchange: StockExchange: the engine driven by this shell
        :in_stream: TextIO: text stream to read input commands from
        :out_stream: TextIO: text stream to write resulting output to
        :_subscribers: Dict[str, Subscriber]: subscribers created through this shell, keyed by case-folded name,
            so that subscribing a known name again reuses the same subscriber
        :_delivery_wait_seconds: float: how long `update` waits for deliveries before returning to the prompt
        :_processors: Dict[str, Callable[..., None]]: a mapping from command word to its processor method

    A failed command never stops the loop: it is reported to the output stream and logged.
    """

    def __init__(
            self,
            exchange: StockExchange,
            in_stream: TextIO,
            out_stream: TextIO,
            delivery_wait_seconds: float = 0.5
    ):
        self.logger = get_configured_logger(self.__class__.__name__)
        self.exchange = exchange
        self.in_stream = in_stream
        self.out_stream = out_stream
        self._subscribers: Dict[str, Subscriber] = {}
        self._delivery_wait_seconds = delivery_wait_seconds
        self._processors: Dict[str, Callable[..., None]] = {
            "list": self.on_list,
            "add": self.on_add,
            "update": self.on_update,
            "subscribe": self.on_subscribe,
            "unsubscribe": self.on_unsubscribe,
            "report": self.on_report,
            "log": self.on_log,
            "help": self.on_help
        }

    @classmethod
    def from_config(cls, config: Config, in_stream: TextIO, out_stream: TextIO) -> "ExchangeShell":
        """
        Build a StockExchange seeded with the instruments and subscribers of given config, and a shell over it

        :param config: Config: initial state and engine settings
        :param in_stream: TextIO: text input stream
        :param out_stream: TextIO: text output stream, also used by the seeded subscribers
        :returns: Instance of ExchangeShell
        :raises: ValueError: if an instrument of the config is rejected by the engine

        """
        shell = cls(StockExchange(config.settings), in_stream, out_stream)
        for symbol, price in config.instruments.items():
            if not shell.exchange.add_instrument(symbol, price):
                shell.exchange.shutdown()
                raise ValueError(f"Instrument rejected at startup: {symbol} at {price}")
        for spec in config.subscribers:
            subscriber = create_subscriber(spec.kind, spec.name, out_stream=out_stream, email=spec.email)
            if isinstance(subscriber, TradingRobot):
                for symbol, rule in spec.rules.items():
                    subscriber.set_rule(symbol, rule.buy_below, rule.sell_above)
            shell.adopt(subscriber)
            for symbol in spec.symbols:
                shell.exchange.register(symbol, subscriber)
        shell.logger.info("exchange seeded", instruments=len(config.instruments), subscribers=len(config.subscribers))
        return shell

    def adopt(self, subscriber: Subscriber) -> None:
        """Make given subscriber addressable by name from shell commands"""
        self._subscribers.setdefault(subscriber.name.casefold(), subscriber)

    def run(self) -> None:
        """
        Keep listening to input commands and process them in order until `quit` command or end of stream.
        For each command, set a new UUID as correlation id into the log-context

        """
        while True:
            self.logger.extra = dict(correlation_id=str(uuid.uuid4()))
            line = self.in_stream.readline()
            command = line.strip()
            if command == "quit" or line == "":
                self.logger.info("CHECKPOINT: Exit", command=command)
                break
            self.process_one(command)

    def process_one(self, command: str) -> None:
        """
        Process a single command with error handling

        :param command: str: command to process

        """
        try:
            self.logger.info("CHECKPOINT: start processing command", command=command)
            parts = shlex.split(command)
            cmd, args = parts[0].lower(), parts[1:]
            self._processors[cmd](*args)
        except IndexError:
            self.logger.warning("blank command", valid=list(self._processors.keys()), command=command)
        except KeyError:
            self.logger.error("unknown command", valid=list(self._processors.keys()), command=command)
            self.publish("Unknown command. Type 'help' for the list of commands.")
        except TypeError:
            self.logger.error("invalid args", command=command)
            self.publish("Invalid arguments. Type 'help' for the list of commands.")
        except ValueError as e:
            self.logger.error("command failed", command=command)
            self.publish(f"Error: {e}")
        finally:
            self.logger.info("CHECKPOINT: end processing command", command=command)

    def _known_symbol(self, symbol: str) -> Optional[str]:
        symbol = symbol.upper()
        if not self.exchange.has_instrument(symbol):
            self.publish("Stock not found.")
            return None
        return symbol

    def on_list(self) -> None:
        """Process `list` command: publish every stock with its current price"""
        self.publish("Stocks:")
        for symbol in self.exchange.list_symbols():
            self.publish(f" - {symbol} : {self.exchange.get_price(symbol):.2f}")

    def on_add(self, symbol: str, price: str) -> None:
        """
        Process `add` command: add a stock, or reset the price of an existing one

        :param symbol: str: symbol of the new stock, upper-cased
        :param price: str: a string representing the initial price

        """
        symbol = symbol.upper()
        initial_price = parse_price(price)
        if self.exchange.add_instrument(symbol, initial_price):
            self.publish(f"Stock {symbol} added at {initial_price}")
        else:
            self.publish("Invalid price.")

    def on_update(self, symbol: str, price: str) -> None:
        """
        Process `update` command:
            - update the price if the symbol is known
            - wait briefly for deliveries so that subscriber output precedes the next command

        :param symbol: str: symbol to update
        :param price: str: a string representing the new price

        """
        symbol = self._known_symbol(symbol)
        if symbol is None:
            return
        new_price = parse_price(price)
        if not self.exchange.update_price(symbol, new_price):
            self.publish("Invalid price.")
            return
        if not self.exchange.wait_for_deliveries(self._delivery_wait_seconds):
            self.logger.warning("returning before all deliveries finished", symbol=symbol, price=new_price)

    def on_subscribe(self, kind: str, symbol: str, name: str, *extra: str) -> None:
        """
        Process `subscribe` command:
            - reuse the subscriber of given name if this shell knows one, otherwise create it
            - for robots, set a rule for the symbol when thresholds are given
            - register the subscriber to the symbol

        :param kind: str: one of trader, email, robot
        :param symbol: str: symbol to subscribe to
        :param name: str: name of the subscriber
        :param extra: str: e-mail address for kind email, optional BUY and SELL thresholds for kind robot

        """
        kind = kind.lower()
        if kind not in SUBSCRIBER_CLASSES:
            self.publish(f"Unknown subscriber type: {kind}. Expected one of {', '.join(SUBSCRIBER_CLASSES)}")
            return
        if (kind == "trader" and extra) or (kind == "email" and len(extra) != 1) \
                or (kind == "robot" and len(extra) not in (0, 2)):
            raise TypeError(f"invalid arguments for subscriber type {kind}: {extra}")
        symbol = self._known_symbol(symbol)
        if symbol is None:
            return

        subscriber = self._subscribers.get(name.casefold())
        created = subscriber is None
        if created:
            subscriber = create_subscriber(
                kind, name, out_stream=self.out_stream, email=extra[0] if kind == "email" else None)
        elif not isinstance(subscriber, SUBSCRIBER_CLASSES[kind]):
            self.publish(f"Subscriber {subscriber.name} already exists as {subscriber.__class__.__name__}")
            return
        elif kind == "email" and subscriber.email != extra[0]:
            self.publish(f"Subscriber {subscriber.name} already exists with address {subscriber.email}")
            return

        if kind == "robot" and extra:
            subscriber.set_rule(symbol, parse_price(extra[0]), parse_price(extra[1]))
        if created:
            # adopt only once the rule is accepted
            self.adopt(subscriber)
            self.logger.debug("subscriber created", kind=kind, name=name)
        if self.exchange.register(symbol, subscriber):
            self.publish(f"{subscriber.name} subscribed to {symbol}")
        else:
            self.publish(f"{subscriber.name} is already subscribed to {symbol}")

    def on_unsubscribe(self, symbol: str, name: str) -> None:
        """
        Process `unsubscribe` command: remove the subscriber of given name from given symbol

        :param symbol: str: symbol to unsubscribe from
        :param name: str: name of the subscriber, case-insensitive

        """
        symbol = self._known_symbol(symbol)
        if symbol is None:
            return
        subscriber = self.exchange.find_by_name(symbol, name)
        if subscriber is None:
            self.publish("Observer not found on this stock.")
            return
        self.exchange.remove(symbol, subscriber)
        self.publish(f"{subscriber.name} unsubscribed from {symbol}")

    def on_report(self) -> None:
        """Process `report` command: publish subscribers and their delivery counts per stock"""
        self.publish("=== Subscribers report ===")
        for symbol, subscribers in self.exchange.subscribers_report().items():
            self.publish(f"Stock: {symbol}")
            if not subscribers:
                self.publish("  (no subscribers)")
            for name, count in subscribers:
                self.publish(f"  - {name} (notifications received: {count})")

    def on_log(self) -> None:
        """Process `log` command: publish the full event log"""
        self.publish("=== Event log ===")
        for entry in self.exchange.dump_log():
            self.publish(str(entry))

    def on_help(self) -> None:
        self.publish(HELP_TEXT)

    def publish(self, message: str) -> None:
        """
        Write given message to the output stream of this shell

        :param message: str: text to publish

        """
        print(message, file=self.out_stream)
