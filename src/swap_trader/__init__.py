"""swap-trader: automated token swaps with take-profit / stop-loss exits."""

__version__ = "0.1.0"
