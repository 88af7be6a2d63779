"""Solana JSON-RPC ledger client."""

from __future__ import annotations

import base64
import itertools
import time
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from swap_trader.config import Settings
from swap_trader.errors import BuildFailed, NetworkUnavailable
from swap_trader.ledger.base import SignatureStatus
from swap_trader.types import Checkpoint
from swap_trader.utils.logging import get_logger

_ACCEPTED_STATUSES = {
    "processed": {"processed", "confirmed", "finalized"},
    "confirmed": {"confirmed", "finalized"},
    "finalized": {"finalized"},
}


class SolanaRpcLedger:
    """Ledger over plain JSON-RPC.

    Read calls are idempotent and retried on transport failure. Broadcast is
    not retried here; the node's own ``maxRetries`` bounds retransmission.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._ids = itertools.count(1)
        self._logger = get_logger("swap_trader.ledger.rpc")

    def get_balance(self, owner: str) -> int:
        result = self._read("getBalance", [owner, {"commitment": self._commitment}])
        try:
            return int(_value(result))
        except (TypeError, ValueError) as exc:
            raise NetworkUnavailable("balance_unparseable") from exc

    def get_token_balance(self, owner: str, asset: str) -> int:
        result = self._read(
            "getTokenAccountsByOwner",
            [
                owner,
                {"mint": asset},
                {"encoding": "jsonParsed", "commitment": self._commitment},
            ],
        )
        accounts = _value(result) or []
        total = 0
        for account in accounts:
            try:
                info = account["account"]["data"]["parsed"]["info"]
                total += int(info["tokenAmount"]["amount"])
            except (KeyError, TypeError, ValueError) as exc:
                raise NetworkUnavailable("token_account_unparseable") from exc
        return total

    def get_latest_checkpoint(self) -> Checkpoint:
        result = self._read("getLatestBlockhash", [{"commitment": self._commitment}])
        value = _value(result)
        try:
            return Checkpoint(
                blockhash=str(value["blockhash"]),
                last_valid_block_height=int(value["lastValidBlockHeight"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise NetworkUnavailable("checkpoint_unparseable") from exc

    def submit(self, signed_tx: bytes, *, skip_preflight: bool, max_retries: int) -> str:
        encoded = base64.b64encode(signed_tx).decode("ascii")
        signature = self._call(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "maxRetries": max_retries,
                    "preflightCommitment": self._commitment,
                },
            ],
        )
        if not isinstance(signature, str) or not signature:
            raise NetworkUnavailable("send_transaction_no_signature")
        return signature

    def get_block_height(self) -> int:
        return int(self._read("getBlockHeight", [{"commitment": self._commitment}]))

    def get_signature_status(self, signature: str) -> SignatureStatus | None:
        """Look the signature up, including transaction history."""
        return self._classify(self._signature_status(signature, search_history=True))

    def confirm(self, signature: str, checkpoint: Checkpoint) -> bool:
        """Poll signature status until accepted or the blockhash expires.

        Raises ``BuildFailed`` when the transaction landed with an error.
        """
        deadline = time.monotonic() + self._settings.confirm_timeout
        while True:
            status = self._signature_status(signature, search_history=False)
            outcome = self._classify(status)
            if outcome == "failed":
                raise BuildFailed(f"transaction_failed: {status['err']}")  # type: ignore[index]
            if outcome == "landed":
                return True

            height = self.get_block_height()
            if height > checkpoint.last_valid_block_height:
                self._logger.warning(
                    "checkpoint_expired",
                    signature=signature,
                    block_height=height,
                    last_valid_block_height=checkpoint.last_valid_block_height,
                )
                return False
            if time.monotonic() >= deadline:
                self._logger.warning("confirm_deadline_reached", signature=signature)
                return False
            time.sleep(self._settings.confirm_poll_interval)

    def _classify(self, status: dict[str, Any] | None) -> SignatureStatus | None:
        if status is None:
            return None
        if status.get("err"):
            return "failed"
        if status.get("confirmationStatus") in _ACCEPTED_STATUSES[self._commitment]:
            return "landed"
        return None

    @property
    def _commitment(self) -> str:
        return self._settings.rpc_commitment

    def _signature_status(self, signature: str, *, search_history: bool) -> dict[str, Any] | None:
        result = self._read(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": search_history}],
        )
        statuses = _value(result) or [None]
        status = statuses[0]
        return status if isinstance(status, dict) else None

    @retry(
        retry=retry_if_exception_type(NetworkUnavailable),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _read(self, method: str, params: list[Any]) -> Any:
        return self._call(method, params)

    def _call(self, method: str, params: list[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            with httpx.Client(
                timeout=self._settings.rpc_timeout,
                transport=self._transport,
            ) as client:
                response = client.post(self._settings.rpc_url, json=body)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            raise NetworkUnavailable(f"{method}: {exc}") from exc
        except ValueError as exc:
            raise NetworkUnavailable(f"{method}: response_not_json") from exc

        if not isinstance(payload, dict):
            raise NetworkUnavailable(f"{method}: response_json_not_object")
        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise NetworkUnavailable(f"{method}: {message}")
        return payload.get("result")


def _value(result: Any) -> Any:
    """Unwrap the ``{"context": ..., "value": ...}`` envelope."""
    if isinstance(result, dict) and "value" in result:
        return result["value"]
    return result
