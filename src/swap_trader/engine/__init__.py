"""Position lifecycle engine exports."""

from swap_trader.engine.executor import TradeExecutor
from swap_trader.engine.monitor import PositionMonitor, evaluate_exit
from swap_trader.engine.quotes import QuoteClient
from swap_trader.engine.store import PositionStore
from swap_trader.engine.submitter import TransactionSubmitter, decode_swap_payload

__all__ = [
    "PositionMonitor",
    "PositionStore",
    "QuoteClient",
    "TradeExecutor",
    "TransactionSubmitter",
    "decode_swap_payload",
    "evaluate_exit",
]
