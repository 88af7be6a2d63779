"""In-memory position store with compare-and-swap status transitions."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

from swap_trader.errors import InvalidTransition, PositionExists, PositionNotFound
from swap_trader.types import Position, PositionKey, PositionStatus

_ALLOWED_TRANSITIONS = {
    (PositionStatus.PENDING, PositionStatus.OPEN),
    (PositionStatus.OPEN, PositionStatus.CLOSING),
    (PositionStatus.CLOSING, PositionStatus.CLOSED),
    (PositionStatus.CLOSING, PositionStatus.OPEN),
}
_MUTABLE_FIELDS = {
    "quantity",
    "capital_committed",
    "last_signature",
    "needs_reconcile",
    "pre_trade_balance",
    "valid_until_height",
}


class PositionStore:
    """Sole owner of position records.

    Every mutation happens under one lock and is guarded by the record's
    current status, so two callers racing on the same position cannot both
    win. Readers always get copies.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._positions: dict[PositionKey, Position] = {}

    def open(self, position: Position) -> Position:
        """Register a new pending position."""
        if position.status != PositionStatus.PENDING:
            raise InvalidTransition(f"open_requires_pending: {position.status.value}")
        _check_amounts(position.quantity, position.capital_committed)
        with self._lock:
            if position.key in self._positions:
                existing = self._positions[position.key]
                raise PositionExists(
                    f"position_exists: {position.asset} ({existing.status.value})"
                )
            stored = replace(position)
            _refresh_entry_price(stored)
            self._positions[position.key] = stored
            return replace(stored)

    def transition(
        self,
        key: PositionKey,
        from_status: PositionStatus,
        to_status: PositionStatus,
        **changes: Any,
    ) -> Position:
        """Move ``key`` from ``from_status`` to ``to_status`` atomically.

        ``changes`` may update quantity, capital, signature and the
        reconcile flag in the same step. Reaching ``closed`` removes the
        record; the returned copy is its final state.
        """
        if (from_status, to_status) not in _ALLOWED_TRANSITIONS:
            raise InvalidTransition(
                f"transition_not_allowed: {from_status.value}->{to_status.value}"
            )
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"immutable_fields: {sorted(unknown)}")

        with self._lock:
            current = self._require(key)
            if current.status != from_status:
                raise InvalidTransition(
                    f"status_mismatch: expected {from_status.value}, got {current.status.value}"
                )
            updated = replace(current, status=to_status, **changes)
            _check_amounts(updated.quantity, updated.capital_committed)
            _refresh_entry_price(updated)
            if to_status == PositionStatus.CLOSED:
                del self._positions[key]
            else:
                self._positions[key] = updated
            return replace(updated)

    def mark_unconfirmed(
        self,
        key: PositionKey,
        status: PositionStatus,
        signature: str,
        *,
        pre_trade_balance: int | None = None,
        valid_until_height: int | None = None,
    ) -> Position:
        """Flag a position whose last transaction outcome is unknown.

        The pre-trade balance and checkpoint height are kept so reconcile can
        settle from the balance delta once the outcome is knowable.
        """
        with self._lock:
            current = self._require(key)
            if current.status != status:
                raise InvalidTransition(
                    f"status_mismatch: expected {status.value}, got {current.status.value}"
                )
            current.needs_reconcile = True
            current.last_signature = signature
            current.pre_trade_balance = pre_trade_balance
            current.valid_until_height = valid_until_height
            return replace(current)

    def remove(self, key: PositionKey, expected_status: PositionStatus | None = None) -> Position:
        with self._lock:
            current = self._require(key)
            if expected_status is not None and current.status != expected_status:
                raise InvalidTransition(
                    f"status_mismatch: expected {expected_status.value}, "
                    f"got {current.status.value}"
                )
            del self._positions[key]
            return replace(current)

    def get(self, key: PositionKey) -> Position | None:
        with self._lock:
            position = self._positions.get(key)
            return replace(position) if position is not None else None

    def list_open(self) -> list[Position]:
        with self._lock:
            return [replace(p) for p in self._positions.values() if p.status == PositionStatus.OPEN]

    def list_positions(self, owner: str | None = None) -> list[Position]:
        """All active positions, optionally for one owner, in insertion order."""
        with self._lock:
            return [
                replace(p)
                for p in self._positions.values()
                if owner is None or p.owner == owner
            ]

    def list_unconfirmed(self) -> list[Position]:
        with self._lock:
            return [replace(p) for p in self._positions.values() if p.needs_reconcile]

    def _require(self, key: PositionKey) -> Position:
        position = self._positions.get(key)
        if position is None:
            raise PositionNotFound(f"position_not_found: {key[1]}")
        return position


def _check_amounts(quantity: int, capital_committed: int) -> None:
    if quantity < 0 or capital_committed < 0:
        raise ValueError("amounts_must_be_non_negative")


def _refresh_entry_price(position: Position) -> None:
    if position.quantity > 0:
        position.entry_price = position.capital_committed / position.quantity
