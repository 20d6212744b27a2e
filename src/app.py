#!/usr/bin/env python
"""This module is main entrypoint of the application"""
import sys

from stock_exchange_observer.helpers import load_exchange_config
from stock_exchange_observer.shell import ExchangeShell


def main():
    """
    Entrypoint to the application:
        - Load exchange config
        - Build a seeded StockExchange and run an ExchangeShell over stdin/stdout
        - Stop delivery workers on exit

    """
    config_path = sys.argv[1]
    config = load_exchange_config(config_path)
    shell = ExchangeShell.from_config(config=config, in_stream=sys.stdin, out_stream=sys.stdout)
    with shell.exchange:
        shell.run()


if __name__ == '__main__':
    main()
