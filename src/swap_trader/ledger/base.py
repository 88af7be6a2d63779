"""Ledger collaborator interface consumed by the engine."""

from __future__ import annotations

from typing import Literal, Protocol

from swap_trader.types import Checkpoint

SignatureStatus = Literal["landed", "failed"]


class Ledger(Protocol):
    """Reads balances, resolves checkpoints, broadcasts and confirms transactions."""

    def get_balance(self, owner: str) -> int:
        """Native base-asset balance in smallest units."""

    def get_token_balance(self, owner: str, asset: str) -> int:
        """Raw token balance; 0 when the owner holds no account for ``asset``."""

    def get_latest_checkpoint(self) -> Checkpoint:
        """Most recent blockhash and the last height at which it is valid."""

    def get_block_height(self) -> int:
        ...

    def get_signature_status(self, signature: str) -> SignatureStatus | None:
        """``"landed"`` at the configured commitment, ``"failed"`` when it landed
        with an error, ``None`` when the ledger does not know it (yet)."""

    def submit(self, signed_tx: bytes, *, skip_preflight: bool, max_retries: int) -> str:
        """Broadcast a signed transaction and return its signature."""

    def confirm(self, signature: str, checkpoint: Checkpoint) -> bool:
        """Block until confirmed (``True``) or the checkpoint expires (``False``)."""
