"""Transaction builder/submitter: quote -> signed, broadcast, confirmed swap."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Callable, TypeVar

from swap_trader.aggregator.client import AggregatorClient
from swap_trader.aggregator.schemas import Quote
from swap_trader.config import Settings
from swap_trader.errors import (
    BuildFailed,
    ConfirmationTimeout,
    MalformedPayload,
    NetworkUnavailable,
    SigningFailed,
    SwapTraderError,
)
from swap_trader.ledger.base import Ledger
from swap_trader.signing.signers import Signer
from swap_trader.utils.logging import get_logger, log_submission

T = TypeVar("T")

_STAGE_ERRORS: dict[str, type[SwapTraderError]] = {
    "build": BuildFailed,
    "decode": MalformedPayload,
    "sign": SigningFailed,
}


class TransactionSubmitter:
    """Runs the six submission steps; each failure raises its taxonomy error.

    1. build (``BuildFailed``), 2. decode (``MalformedPayload``),
    3. sign (``SigningFailed``), 4. checkpoint (``NetworkUnavailable``),
    5. broadcast without preflight, 6. confirm against the checkpoint
    (``ConfirmationTimeout``, outcome unknown, also raised when the ledger
    cannot be reached after broadcast).
    """

    def __init__(self, settings: Settings, aggregator: AggregatorClient, ledger: Ledger) -> None:
        self._settings = settings
        self._aggregator = aggregator
        self._ledger = ledger
        self._logger = get_logger("swap_trader.engine.submitter")

    def execute(self, quote: Quote, signer: Signer) -> str:
        """Return the signature of a transaction accepted for confirmation."""
        swap_tx = self._stage("build", self._aggregator.build_swap, quote.raw, signer.public_id)
        unsigned = self._stage("decode", decode_swap_payload, swap_tx)
        signed = self._stage("sign", signer.sign, unsigned)
        checkpoint = self._stage("checkpoint", self._ledger.get_latest_checkpoint)
        signature = self._stage(
            "broadcast",
            self._ledger.submit,
            signed,
            skip_preflight=True,
            max_retries=self._settings.max_retries,
        )
        log_submission(
            self._logger,
            stage="broadcast",
            success=True,
            signature=signature,
            last_valid_block_height=checkpoint.last_valid_block_height,
        )

        try:
            confirmed = self._stage("confirm", self._ledger.confirm, signature, checkpoint)
        except NetworkUnavailable as exc:
            # Already broadcast: the outcome is unknown, not failed.
            raise ConfirmationTimeout(
                signature,
                f"confirm_unreachable: {exc.message}",
                last_valid_block_height=checkpoint.last_valid_block_height,
            ) from exc
        if not confirmed:
            log_submission(self._logger, stage="confirm", success=False, signature=signature)
            raise ConfirmationTimeout(
                signature, last_valid_block_height=checkpoint.last_valid_block_height
            )
        log_submission(self._logger, stage="confirm", success=True, signature=signature)
        return signature

    def _stage(self, stage: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except SwapTraderError as exc:
            log_submission(self._logger, stage=stage, success=False, error=exc.message)
            raise
        except Exception as exc:  # noqa: BLE001 - collaborator faults map to the stage's error.
            log_submission(self._logger, stage=stage, success=False, error=str(exc))
            error_cls = _STAGE_ERRORS.get(stage, NetworkUnavailable)
            raise error_cls(f"{stage}: {exc}") from exc


def decode_swap_payload(swap_tx: str) -> bytes:
    """Decode the aggregator's base64 transaction into raw bytes."""
    if not isinstance(swap_tx, str) or not swap_tx.strip():
        raise MalformedPayload("swap_payload_empty")
    try:
        raw = base64.b64decode(swap_tx, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayload(f"swap_payload_not_base64: {exc}") from exc
    if not raw:
        raise MalformedPayload("swap_payload_empty")
    return raw
