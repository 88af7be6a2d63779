"""Quote client: one best-effort price snapshot per call."""

from __future__ import annotations

import time

from swap_trader.aggregator.client import AggregatorClient
from swap_trader.aggregator.schemas import Quote
from swap_trader.errors import QuoteUnavailable
from swap_trader.utils.logging import get_logger, log_quote


class QuoteClient:
    """Normalizes aggregator quotes. Failures are returned, never raised.

    No retry: a stale price retried blindly is worse than none, so callers
    decide whether to ask again.
    """

    def __init__(self, aggregator: AggregatorClient) -> None:
        self._aggregator = aggregator
        self._logger = get_logger("swap_trader.engine.quotes")

    def quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> Quote | QuoteUnavailable:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            return QuoteUnavailable("invalid_amount")

        started = time.perf_counter()
        try:
            payload = self._aggregator.get_quote(input_mint, output_mint, amount, slippage_bps)
            quote = Quote.from_payload(
                payload,
                input_mint=input_mint,
                output_mint=output_mint,
                amount=amount,
                slippage_bps=slippage_bps,
            )
        except QuoteUnavailable as exc:
            self._log(input_mint, output_mint, amount, started, error=exc.message)
            return exc
        except ValueError as exc:
            self._log(input_mint, output_mint, amount, started, error=str(exc))
            return QuoteUnavailable(f"malformed_quote: {exc}")
        except Exception as exc:  # noqa: BLE001 - quote failures are returned, never raised.
            self._log(input_mint, output_mint, amount, started, error=str(exc))
            return QuoteUnavailable(f"quote_error: {exc}")

        log_quote(
            self._logger,
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            success=True,
            latency_ms=(time.perf_counter() - started) * 1000,
            out_amount=quote.out_amount,
            price_impact_pct=quote.price_impact_pct,
        )
        return quote

    def price(
        self,
        asset: str,
        base_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> float | QuoteUnavailable:
        """Base units received per asset unit when selling ``amount`` of ``asset``."""
        quote = self.quote(asset, base_mint, amount, slippage_bps)
        if isinstance(quote, QuoteUnavailable):
            return quote
        return quote.price

    def _log(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        started: float,
        *,
        error: str,
    ) -> None:
        log_quote(
            self._logger,
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            success=False,
            latency_ms=(time.perf_counter() - started) * 1000,
            error=error,
        )
