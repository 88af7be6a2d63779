"""Error taxonomy for the position lifecycle engine."""

from __future__ import annotations


class SwapTraderError(Exception):
    """Base error. ``code`` is the stable identifier surfaced in results."""

    code = "error"
    retryable = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class QuoteUnavailable(SwapTraderError):
    """Aggregator could not produce a usable quote."""

    code = "quote_unavailable"


class BuildFailed(SwapTraderError):
    """Aggregator refused to build the swap, or the transaction failed on-chain."""

    code = "build_failed"


class MalformedPayload(SwapTraderError):
    """Swap payload could not be decoded into transaction bytes."""

    code = "malformed_payload"


class SigningFailed(SwapTraderError):
    code = "signing_failed"


class NetworkUnavailable(SwapTraderError):
    """Ledger RPC unreachable or returned an error object."""

    code = "network_unavailable"
    retryable = True


class ConfirmationTimeout(SwapTraderError):
    """Checkpoint expired before confirmation. The transaction may still land."""

    code = "confirmation_timeout"

    def __init__(
        self,
        signature: str,
        message: str = "",
        *,
        last_valid_block_height: int | None = None,
    ) -> None:
        super().__init__(message or f"confirmation_timeout: {signature}")
        self.signature = signature
        self.last_valid_block_height = last_valid_block_height


class PositionExists(SwapTraderError):
    code = "position_exists"


class InvalidTransition(SwapTraderError):
    code = "invalid_transition"


class PositionNotFound(SwapTraderError):
    code = "position_not_found"


class ZeroBalance(SwapTraderError):
    code = "zero_balance"


class WalletNotConnected(SwapTraderError):
    code = "wallet_not_connected"


class TradeFailed(SwapTraderError):
    """Trade rejected before reaching the ledger."""

    code = "trade_failed"

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or f"trade_failed: {reason}")
        self.reason = reason
