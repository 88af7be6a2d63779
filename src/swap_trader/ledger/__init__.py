"""Ledger collaborator interface and JSON-RPC implementation."""

from swap_trader.ledger.base import Ledger, SignatureStatus
from swap_trader.ledger.rpc import SolanaRpcLedger

__all__ = ["Ledger", "SignatureStatus", "SolanaRpcLedger"]
