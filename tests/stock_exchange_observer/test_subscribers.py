import threading
from decimal import Decimal
from io import StringIO

import pytest

from stock_exchange_observer.entities import Signal, TradingRule
from stock_exchange_observer.subscribers import (
    HISTORY_SIZE, DeliveryError, EmailNotifier, Subscriber, Trader, TradingRobot, create_subscriber
)


def test_subscriber_is_abstract():
    with pytest.raises(TypeError):
        Subscriber("nobody")


def test_record_delivery_is_thread_safe():
    trader = Trader("Alice")
    threads = [threading.Thread(target=lambda: [trader.record_delivery() for _ in range(500)]) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert trader.delivery_count == 4000


def test_trader():
    ops = StringIO()
    trader = Trader("Trader Alice", out_stream=ops)
    trader.deliver("AAPL", Decimal("181.00"))
    assert list(trader.received) == [("AAPL", Decimal("181.00"))]
    assert ops.getvalue() == "Trader Alice: received update - AAPL = 181.00\n"
    # delivering does not count; the dispatcher records successful deliveries
    assert trader.delivery_count == 0


def test_trader_without_stream_is_silent():
    trader = Trader("Quiet")
    trader.deliver("AAPL", Decimal("1"))
    assert list(trader.received) == [("AAPL", Decimal("1"))]


def test_email_notifier():
    ops = StringIO()
    notifier = EmailNotifier("Email Bob", "bob@example.com", out_stream=ops)
    notifier.deliver("GOOG", Decimal("2810.00"))
    assert list(notifier.sent) == ["GOOG=2810.00"]
    assert ops.getvalue() == "Email Bob: e-mail sent to bob@example.com about GOOG=2810.00\n"


def test_email_notifier_without_address_fails():
    notifier = EmailNotifier("Email Bob", "  ")
    with pytest.raises(DeliveryError) as e_info:
        notifier.deliver("GOOG", Decimal("2810.00"))
    assert e_info.value.args[0] == "no e-mail address configured for Email Bob"
    assert list(notifier.sent) == []


@pytest.mark.parametrize(
    "price,signal",
    [
        ("165.00", Signal.BUY),
        ("170", Signal.BUY),
        ("205.00", Signal.SELL),
        ("200", Signal.SELL),
        ("185.00", Signal.HOLD),
    ]
)
def test_robot_evaluate(price, signal):
    robot = TradingRobot("RobotX")
    robot.set_rule("AAPL", Decimal("170"), Decimal("200"))
    assert robot.evaluate("AAPL", Decimal(price)) is signal
    assert robot.evaluate("TSLA", Decimal(price)) is Signal.NO_RULE


def test_robot_deliver_records_signal():
    ops = StringIO()
    robot = TradingRobot("RobotX", out_stream=ops)
    robot.set_rule("AAPL", Decimal("170"), Decimal("200"))
    assert robot.last_signal("AAPL") is None
    robot.deliver("AAPL", Decimal("165.00"))
    robot.deliver("AAPL", Decimal("205.00"))
    robot.deliver("AAPL", Decimal("185.00"))
    robot.deliver("MSFT", Decimal("1"))
    assert robot.last_signal("AAPL") is Signal.HOLD
    assert robot.last_signal("MSFT") is Signal.NO_RULE
    assert [signal for _, _, signal in robot.signals] == [Signal.BUY, Signal.SELL, Signal.HOLD, Signal.NO_RULE]
    assert ops.getvalue().splitlines() == [
        "RobotX: BUY condition met for AAPL (price=165.00 <= 170). Buying.",
        "RobotX: SELL condition met for AAPL (price=205.00 >= 200). Selling.",
        "RobotX: watching AAPL=185.00, no conditions met.",
        "RobotX: no rules for MSFT. Ignoring.",
    ]


def test_robot_rules():
    robot = TradingRobot("RobotX")
    robot.set_rule("AAPL", Decimal("170"), Decimal("200"))
    robot.set_rule("AAPL", Decimal("150"), Decimal("210"))
    assert robot.get_rule("AAPL") == TradingRule(Decimal("150"), Decimal("210"))
    with pytest.raises(ValueError) as e_info:
        robot.set_rule("TSLA", Decimal("260"), Decimal("200"))
    assert e_info.value.args[0] == "buy threshold 260 must be below sell threshold 200"
    assert robot.get_rule("TSLA") is None


def test_create_subscriber():
    ops = StringIO()
    trader = create_subscriber("trader", "Alice", out_stream=ops)
    assert isinstance(trader, Trader) and trader.out_stream is ops
    notifier = create_subscriber("email", "Bob", email="bob@example.com")
    assert isinstance(notifier, EmailNotifier) and notifier.email == "bob@example.com"
    assert isinstance(create_subscriber("robot", "RobotX"), TradingRobot)
    with pytest.raises(ValueError) as e_info:
        create_subscriber("email", "Bob")
    assert e_info.value.args[0] == "E-mail address required for subscriber: Bob"
    with pytest.raises(ValueError) as e_info:
        create_subscriber("pager", "Carol")
    assert e_info.value.args[0] == "Unknown subscriber type: pager"


def test_histories_are_bounded():
    trader = Trader("Alice")
    notifier = EmailNotifier("Bob", "bob@example.com")
    robot = TradingRobot("RobotX")
    for value in range(HISTORY_SIZE + 5):
        for subscriber in [trader, notifier, robot]:
            subscriber.deliver("AAPL", Decimal(value))
    assert len(trader.received) == HISTORY_SIZE
    assert trader.received[0] == ("AAPL", Decimal(5))
    assert trader.received[-1] == ("AAPL", Decimal(HISTORY_SIZE + 4))
    assert len(notifier.sent) == HISTORY_SIZE
    assert len(robot.signals) == HISTORY_SIZE
    assert robot.last_signal("AAPL") is Signal.NO_RULE
