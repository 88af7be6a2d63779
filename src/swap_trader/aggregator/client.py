"""Swap aggregator HTTP client (Jupiter v6 API shape)."""

from __future__ import annotations

from typing import Any

import httpx

from swap_trader.config import Settings
from swap_trader.errors import BuildFailed, QuoteUnavailable
from swap_trader.utils.logging import get_logger


class AggregatorClient:
    """Thin client for the quote and swap-build endpoints.

    Holds no state beyond configuration, so one instance is safe to share
    across threads.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._logger = get_logger("swap_trader.aggregator.client")

    def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> dict[str, Any]:
        """Fetch one raw quote payload. Raises ``QuoteUnavailable``."""
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "false",
        }
        try:
            with self._client(self._settings.quote_timeout) as client:
                response = client.get(self._settings.aggregator_quote_url, params=params)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise QuoteUnavailable(f"quote_http_error: {exc}") from exc

        return _decode_object(response, QuoteUnavailable)

    def build_swap(self, quote_payload: dict[str, Any], user_public_key: str) -> str:
        """Request a prebuilt, unsigned swap transaction (base64). Raises ``BuildFailed``."""
        body = {
            "quoteResponse": quote_payload,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": self._settings.priority_fee_max_lamports,
                    "priorityLevel": self._settings.priority_level,
                }
            },
        }
        try:
            with self._client(self._settings.quote_timeout) as client:
                response = client.post(self._settings.aggregator_swap_url, json=body)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BuildFailed(f"swap_http_error: {exc}") from exc

        payload = _decode_object(response, BuildFailed)
        swap_tx = payload.get("swapTransaction")
        if not isinstance(swap_tx, str) or not swap_tx:
            raise BuildFailed("swap_transaction_missing")
        return swap_tx

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(timeout=timeout, transport=self._transport)


def _decode_object(
    response: httpx.Response,
    error_cls: type[QuoteUnavailable] | type[BuildFailed],
) -> dict[str, Any]:
    """Decode a JSON object body or raise ``error_cls``."""
    if not response.content:
        raise error_cls("empty_response")
    try:
        payload = response.json()
    except ValueError as exc:
        raise error_cls("response_not_json") from exc
    if not isinstance(payload, dict):
        raise error_cls("response_json_not_object")
    if payload.get("error"):
        raise error_cls(f"aggregator_error: {payload['error']}")
    return payload
