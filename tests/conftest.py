from __future__ import annotations

import base64
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from swap_trader.config import WRAPPED_SOL_MINT, Settings
from swap_trader.engine.executor import TradeExecutor
from swap_trader.engine.quotes import QuoteClient
from swap_trader.engine.store import PositionStore
from swap_trader.engine.submitter import TransactionSubmitter
from swap_trader.errors import QuoteUnavailable
from swap_trader.journal.store import JournalStore
from swap_trader.signing.signers import HeldKeySigner
from swap_trader.types import Checkpoint

OWNER = "Owner111111111111111111111111111111111111111"
TOKEN = "Token11111111111111111111111111111111111111"


class FakeAggregator:
    """Quotes from a price table (base units per asset unit)."""

    def __init__(self) -> None:
        self.prices: dict[str, float] = {TOKEN: 0.5}
        self.failing: set[str] = set()
        self.build_error: Exception | None = None
        self.quote_calls: list[tuple[str, str, int]] = []
        self.slippages: list[int] = []
        self._lock = threading.Lock()

    def get_quote(
        self, input_mint: str, output_mint: str, amount: int, slippage_bps: int
    ) -> dict[str, Any]:
        with self._lock:
            self.quote_calls.append((input_mint, output_mint, amount))
            self.slippages.append(slippage_bps)
        asset = output_mint if input_mint == WRAPPED_SOL_MINT else input_mint
        if asset in self.failing:
            raise QuoteUnavailable("quote_http_error: 503")
        price = self.prices[asset]
        out = amount / price if input_mint == WRAPPED_SOL_MINT else amount * price
        return {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "inAmount": str(amount),
            "outAmount": str(int(out)),
            "priceImpactPct": "0.01",
            "slippageBps": slippage_bps,
        }

    def build_swap(self, quote_payload: dict[str, Any], user_public_key: str) -> str:
        if self.build_error is not None:
            raise self.build_error
        return base64.b64encode(b"unsigned:" + quote_payload["outAmount"].encode()).decode()


class FakeLedger:
    def __init__(self) -> None:
        self.token_balances: dict[tuple[str, str], int] = {}
        self.balance_error: Exception | None = None
        self.confirmed = True
        self.signature_statuses: dict[str, str] = {}
        self.block_height = 0
        self.submitted: list[bytes] = []
        self.balance_calls = 0
        self._lock = threading.Lock()

    def get_balance(self, owner: str) -> int:
        return 2_500_000_000

    def get_token_balance(self, owner: str, asset: str) -> int:
        with self._lock:
            self.balance_calls += 1
        if self.balance_error is not None:
            raise self.balance_error
        return self.token_balances.get((owner, asset), 0)

    def get_latest_checkpoint(self) -> Checkpoint:
        return Checkpoint(blockhash="hash", last_valid_block_height=100)

    def get_block_height(self) -> int:
        return self.block_height

    def get_signature_status(self, signature: str) -> str | None:
        return self.signature_statuses.get(signature)

    def submit(self, signed_tx: bytes, *, skip_preflight: bool, max_retries: int) -> str:
        with self._lock:
            self.submitted.append(signed_tx)
            return f"sig-{len(self.submitted)}"

    def confirm(self, signature: str, checkpoint: Checkpoint) -> bool:
        return self.confirmed


@dataclass
class Engine:
    settings: Settings
    store: PositionStore
    aggregator: FakeAggregator
    ledger: FakeLedger
    quotes: QuoteClient
    executor: TradeExecutor
    journal: JournalStore
    owner: str = OWNER
    token: str = TOKEN
    signer: HeldKeySigner = field(
        default_factory=lambda: HeldKeySigner(OWNER, lambda tx: b"signed:" + tx)
    )


@pytest.fixture
def engine(tmp_path: Path) -> Engine:
    settings = Settings(journal_dir=tmp_path, monitor_probe_timeout=2.0, monitor_workers=4)
    store = PositionStore()
    aggregator = FakeAggregator()
    ledger = FakeLedger()
    quotes = QuoteClient(aggregator)  # type: ignore[arg-type]
    journal = JournalStore(tmp_path)
    executor = TradeExecutor(
        settings,
        store,
        quotes,
        TransactionSubmitter(settings, aggregator, ledger),  # type: ignore[arg-type]
        ledger,
        journal,
    )
    return Engine(settings, store, aggregator, ledger, quotes, executor, journal)

