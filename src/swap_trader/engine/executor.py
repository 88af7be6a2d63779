"""Trade executor: buy/sell orchestration over quotes, submission and the store."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from swap_trader.aggregator.schemas import Quote
from swap_trader.config import Settings
from swap_trader.engine.quotes import QuoteClient
from swap_trader.engine.store import PositionStore
from swap_trader.engine.submitter import TransactionSubmitter
from swap_trader.errors import (
    ConfirmationTimeout,
    NetworkUnavailable,
    PositionExists,
    PositionNotFound,
    QuoteUnavailable,
    SwapTraderError,
    TradeFailed,
    ZeroBalance,
)
from swap_trader.journal.store import JournalStore
from swap_trader.ledger.base import Ledger
from swap_trader.signing.signers import Signer
from swap_trader.types import Position, PositionStatus, TradeAction, TradeOptions, TradeResult
from swap_trader.utils.logging import get_logger, log_trade

T = TypeVar("T")


class TradeExecutor:
    """Runs buys and sells end to end.

    Every public method returns a ``TradeResult``; taxonomy errors raised by
    collaborators are converted here and never escape.
    """

    def __init__(
        self,
        settings: Settings,
        store: PositionStore,
        quotes: QuoteClient,
        submitter: TransactionSubmitter,
        ledger: Ledger,
        journal: JournalStore | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._quotes = quotes
        self._submitter = submitter
        self._ledger = ledger
        self._journal = journal
        self._logger = get_logger("swap_trader.engine.executor")

    def buy(
        self,
        owner: str,
        asset: str,
        base_amount: int,
        options: TradeOptions | None,
        signer: Signer,
    ) -> TradeResult:
        """Spend ``base_amount`` (base smallest units) on ``asset``."""
        opts = options or TradeOptions()
        if isinstance(base_amount, bool) or not isinstance(base_amount, int) or base_amount <= 0:
            return self._failed("buy", owner, asset, TradeFailed("invalid_amount"))

        quote = self._quotes.quote(
            self._settings.base_mint,
            asset,
            base_amount,
            self._slippage(opts),
        )
        if isinstance(quote, QuoteUnavailable):
            return self._failed("buy", owner, asset, TradeFailed("quote", quote.message))

        key = (owner, asset)
        try:
            self._store.open(
                Position(
                    owner=owner,
                    asset=asset,
                    quantity=0,
                    capital_committed=base_amount,
                    acquired_at=datetime.now(timezone.utc).isoformat(),
                    take_profit_pct=opts.take_profit_pct,
                    stop_loss_pct=opts.stop_loss_pct,
                )
            )
        except PositionExists as exc:
            return self._failed("buy", owner, asset, TradeFailed("duplicate_position", exc.message))

        try:
            pre_balance = self._read_ledger(
                "token_balance", self._ledger.get_token_balance, owner, asset
            )
            signature = self._submitter.execute(quote, signer)
        except ConfirmationTimeout as exc:
            pending = self._store.mark_unconfirmed(
                key,
                PositionStatus.PENDING,
                exc.signature,
                pre_trade_balance=pre_balance,
                valid_until_height=exc.last_valid_block_height,
            )
            return self._failed("buy", owner, asset, exc, signature=exc.signature, position=pending)
        except SwapTraderError as exc:
            self._store.remove(key, PositionStatus.PENDING)
            return self._failed("buy", owner, asset, exc)

        opened = self._store.transition(
            key,
            PositionStatus.PENDING,
            PositionStatus.OPEN,
            quantity=quote.out_amount,
            last_signature=signature,
        )
        return self._finish(
            TradeResult(
                success=True,
                action="buy",
                owner=owner,
                asset=asset,
                signature=signature,
                position=opened.to_dict(),
                output_amount=quote.out_amount,
            )
        )

    def sell(
        self,
        owner: str,
        asset: str,
        percentage: float,
        options: TradeOptions | None,
        signer: Signer,
    ) -> TradeResult:
        """Sell ``percentage`` of the on-chain balance of ``asset``."""
        opts = options or TradeOptions()
        if isinstance(percentage, bool) or not 0 < percentage <= 100:
            return self._failed("sell", owner, asset, TradeFailed("invalid_percentage"))

        key = (owner, asset)
        try:
            closing = self._store.transition(key, PositionStatus.OPEN, PositionStatus.CLOSING)
        except SwapTraderError as exc:
            # Lost the race or nothing to sell: no ledger call.
            return self._failed("sell", owner, asset, exc, reason=opts.reason)

        try:
            quote, pre_balance = self._sell_quote(owner, asset, percentage, opts)
            signature = self._submitter.execute(quote, signer)
        except ConfirmationTimeout as exc:
            stuck = self._store.mark_unconfirmed(
                key,
                PositionStatus.CLOSING,
                exc.signature,
                pre_trade_balance=pre_balance,
                valid_until_height=exc.last_valid_block_height,
            )
            return self._failed(
                "sell",
                owner,
                asset,
                exc,
                reason=opts.reason,
                signature=exc.signature,
                position=stuck,
            )
        except SwapTraderError as exc:
            self._store.transition(key, PositionStatus.CLOSING, PositionStatus.OPEN)
            return self._failed("sell", owner, asset, exc, reason=opts.reason)

        fraction = percentage / 100
        cost_basis = closing.capital_committed * fraction
        profit = quote.out_amount - cost_basis
        if percentage == 100:
            final = self._store.transition(
                key,
                PositionStatus.CLOSING,
                PositionStatus.CLOSED,
                last_signature=signature,
            )
        else:
            final = self._store.transition(
                key,
                PositionStatus.CLOSING,
                PositionStatus.OPEN,
                quantity=closing.quantity - math.floor(closing.quantity * fraction),
                capital_committed=closing.capital_committed
                - math.floor(closing.capital_committed * fraction),
                last_signature=signature,
            )
        return self._finish(
            TradeResult(
                success=True,
                action="sell",
                owner=owner,
                asset=asset,
                signature=signature,
                reason=opts.reason,
                position=final.to_dict(),
                output_amount=quote.out_amount,
                profit=profit,
                profit_pct=profit / cost_basis * 100 if cost_basis > 0 else None,
            )
        )

    def reconcile(self, owner: str, asset: str) -> TradeResult:
        """Settle a position left pending/closing by a confirmation timeout.

        Nothing changes until the ledger knows the signature or the
        checkpoint has expired. The outcome is then applied from the token
        balance delta against the balance read before the trade.
        """
        key = (owner, asset)
        position = self._store.get(key)
        if position is None:
            return self._failed("reconcile", owner, asset, PositionNotFound())
        if not position.needs_reconcile:
            return TradeResult(
                success=True,
                action="reconcile",
                owner=owner,
                asset=asset,
                reason="nothing_to_reconcile",
                position=position.to_dict(),
            )

        try:
            landed = self._landed(position)
            if landed is None:
                self._logger.info(
                    "reconcile_deferred",
                    asset=asset,
                    signature=position.last_signature,
                    valid_until_height=position.valid_until_height,
                )
                return TradeResult(
                    success=True,
                    action="reconcile",
                    owner=owner,
                    asset=asset,
                    signature=position.last_signature,
                    reason="awaiting_confirmation",
                    position=position.to_dict(),
                )
            balance = self._read_ledger("token_balance", self._ledger.get_token_balance, owner, asset)
            settled, outcome = self._settle(position, landed, balance)
        except SwapTraderError as exc:
            return self._failed("reconcile", owner, asset, exc, signature=position.last_signature)

        return self._finish(
            TradeResult(
                success=True,
                action="reconcile",
                owner=owner,
                asset=asset,
                signature=position.last_signature,
                reason=outcome,
                position=settled.to_dict(),
            )
        )

    def _landed(self, position: Position) -> bool | None:
        """``True``/``False`` once the outcome is final, ``None`` while it may still land."""
        if position.last_signature is not None:
            status = self._read_ledger(
                "signature_status", self._ledger.get_signature_status, position.last_signature
            )
            if status is not None:
                return status == "landed"
        if position.valid_until_height is None:
            return False
        height = self._read_ledger("block_height", self._ledger.get_block_height)
        if height > position.valid_until_height:
            return False
        return None

    def _settle(self, position: Position, landed: bool, balance: int) -> tuple[Position, str]:
        key = position.key
        cleared = {"needs_reconcile": False, "pre_trade_balance": None, "valid_until_height": None}

        if position.status == PositionStatus.PENDING:
            if not landed:
                return self._store.remove(key, PositionStatus.PENDING), "buy_dropped"
            received = balance - (position.pre_trade_balance or 0)
            if received <= 0:
                raise TradeFailed("balance_mismatch", f"buy_landed_without_tokens: {position.asset}")
            opened = self._store.transition(
                key,
                PositionStatus.PENDING,
                PositionStatus.OPEN,
                quantity=received,
                **cleared,
            )
            return opened, "buy_landed"

        if not landed:
            reopened = self._store.transition(
                key, PositionStatus.CLOSING, PositionStatus.OPEN, **cleared
            )
            return reopened, "sell_dropped"

        before = position.pre_trade_balance
        if before is None:
            before = position.quantity
        sold = before - balance
        if sold <= 0:
            raise TradeFailed("balance_mismatch", f"sell_landed_without_outflow: {position.asset}")
        if sold >= before:
            closed = self._store.transition(
                key, PositionStatus.CLOSING, PositionStatus.CLOSED, **cleared
            )
            return closed, "sell_landed"

        fraction = sold / before
        reopened = self._store.transition(
            key,
            PositionStatus.CLOSING,
            PositionStatus.OPEN,
            quantity=position.quantity - math.floor(position.quantity * fraction),
            capital_committed=position.capital_committed
            - math.floor(position.capital_committed * fraction),
            **cleared,
        )
        return reopened, "partial_sell_landed"

    def _sell_quote(
        self,
        owner: str,
        asset: str,
        percentage: float,
        opts: TradeOptions,
    ) -> tuple[Quote, int]:
        balance = self._read_ledger("token_balance", self._ledger.get_token_balance, owner, asset)
        if balance <= 0:
            raise ZeroBalance(f"zero_balance: {asset}")
        sell_amount = math.floor(balance * percentage / 100)
        if sell_amount <= 0:
            raise ZeroBalance(f"sell_amount_rounds_to_zero: {asset}")

        quote = self._quotes.quote(asset, self._settings.base_mint, sell_amount, self._slippage(opts))
        if isinstance(quote, QuoteUnavailable):
            raise TradeFailed("quote", quote.message)
        return quote, balance

    def _read_ledger(self, what: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return fn(*args)
        except SwapTraderError:
            raise
        except Exception as exc:  # noqa: BLE001 - ledger faults surface as network errors.
            self._logger.warning("ledger_read_failed", read=what, error=str(exc))
            raise NetworkUnavailable(f"{what}: {exc}") from exc

    def _slippage(self, opts: TradeOptions) -> int:
        if opts.slippage_bps is None:
            return self._settings.default_slippage_bps
        return opts.slippage_bps

    def _failed(
        self,
        action: TradeAction,
        owner: str,
        asset: str,
        exc: SwapTraderError,
        *,
        reason: str | None = None,
        signature: str | None = None,
        position: Position | None = None,
    ) -> TradeResult:
        return self._finish(
            TradeResult(
                success=False,
                action=action,
                owner=owner,
                asset=asset,
                signature=signature,
                error=exc.code,
                reason=getattr(exc, "reason", None) or reason,
                message=exc.message,
                position=position.to_dict() if position is not None else None,
            )
        )

    def _finish(self, result: TradeResult) -> TradeResult:
        log_trade(
            self._logger,
            action=result.action,
            owner=result.owner,
            asset=result.asset,
            success=result.success,
            signature=result.signature,
            error=result.error,
            reason=result.reason,
            profit=result.profit,
        )
        if self._journal is not None:
            self._journal.append(result.action, result.to_dict())
        return result
