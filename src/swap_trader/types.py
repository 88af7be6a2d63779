"""Shared domain types for the position lifecycle engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal

PositionKey = tuple[str, str]
TradeAction = Literal["buy", "sell", "reconcile"]
ExitReason = Literal["take_profit", "stop_loss", "manual"]


class PositionStatus(str, Enum):
    """Position lifecycle states."""

    PENDING = "pending"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(slots=True)
class Position:
    """One tracked trade, keyed by (owner, asset).

    Amounts are raw integer units: ``quantity`` in the asset's smallest unit,
    ``capital_committed`` in the base asset's smallest unit. ``entry_price``
    is base units paid per asset unit.

    While ``needs_reconcile`` is set, ``pre_trade_balance`` is the on-chain
    token balance read before the unconfirmed transaction and
    ``valid_until_height`` is the last block height at which it could land.
    """

    owner: str
    asset: str
    quantity: int
    capital_committed: int
    acquired_at: str
    entry_price: float = 0.0
    take_profit_pct: float | None = None
    stop_loss_pct: float | None = None
    status: PositionStatus = PositionStatus.PENDING
    last_signature: str | None = None
    needs_reconcile: bool = False
    pre_trade_balance: int | None = None
    valid_until_height: int | None = None

    @property
    def key(self) -> PositionKey:
        return (self.owner, self.asset)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


@dataclass(slots=True)
class TradeOptions:
    """Per-trade overrides. ``None`` falls back to configured defaults."""

    slippage_bps: int | None = None
    take_profit_pct: float | None = None
    stop_loss_pct: float | None = None
    reason: ExitReason = "manual"


@dataclass(slots=True, frozen=True)
class Checkpoint:
    """Recent ledger commitment bounding a transaction's validity window."""

    blockhash: str
    last_valid_block_height: int


@dataclass(slots=True)
class TradeResult:
    """Structured outcome of a buy, sell or reconcile."""

    success: bool
    action: TradeAction
    owner: str
    asset: str
    signature: str | None = None
    error: str | None = None
    reason: str | None = None
    message: str | None = None
    position: dict[str, Any] | None = None
    output_amount: int | None = None
    profit: float | None = None
    profit_pct: float | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
