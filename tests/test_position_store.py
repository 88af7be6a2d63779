from __future__ import annotations

import threading

import pytest

from swap_trader.engine.store import PositionStore
from swap_trader.errors import InvalidTransition, PositionExists, PositionNotFound
from swap_trader.types import Position, PositionStatus

_KEY = ("owner1", "TOKEN")


def _pending(**overrides: object) -> Position:
    values: dict[str, object] = {
        "owner": "owner1",
        "asset": "TOKEN",
        "quantity": 0,
        "capital_committed": 1_000_000,
        "acquired_at": "2026-01-01T00:00:00+00:00",
        "take_profit_pct": 10.0,
        "stop_loss_pct": 5.0,
    }
    values.update(overrides)
    return Position(**values)  # type: ignore[arg-type]


def _open_position(store: PositionStore, quantity: int = 2_000_000) -> Position:
    store.open(_pending())
    return store.transition(
        _KEY, PositionStatus.PENDING, PositionStatus.OPEN, quantity=quantity, last_signature="sig1"
    )


def test_open_then_fill_sets_entry_price() -> None:
    store = PositionStore()
    opened = _open_position(store)
    assert opened.status == PositionStatus.OPEN
    assert opened.entry_price == 0.5
    assert opened.last_signature == "sig1"
    assert [p.asset for p in store.list_open()] == ["TOKEN"]


def test_duplicate_open_fails_and_leaves_existing_untouched() -> None:
    store = PositionStore()
    before = _open_position(store)

    with pytest.raises(PositionExists):
        store.open(_pending(capital_committed=9_999))

    after = store.get(_KEY)
    assert after == before


def test_open_requires_pending_status() -> None:
    with pytest.raises(InvalidTransition):
        PositionStore().open(_pending(status=PositionStatus.OPEN))


def test_transition_is_compare_and_swap() -> None:
    store = PositionStore()
    _open_position(store)
    store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSING)

    with pytest.raises(InvalidTransition):
        store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSING)
    assert store.get(_KEY).status == PositionStatus.CLOSING  # type: ignore[union-attr]


def test_transitions_cannot_skip_states() -> None:
    store = PositionStore()
    store.open(_pending())
    with pytest.raises(InvalidTransition):
        store.transition(_KEY, PositionStatus.PENDING, PositionStatus.CLOSING)
    with pytest.raises(InvalidTransition):
        store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSED)


def test_closing_to_closed_removes_record() -> None:
    store = PositionStore()
    _open_position(store)
    store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSING)
    final = store.transition(_KEY, PositionStatus.CLOSING, PositionStatus.CLOSED)

    assert final.status == PositionStatus.CLOSED
    assert store.get(_KEY) is None
    assert store.list_open() == []
    # Key is free again.
    store.open(_pending())


def test_rejects_negative_amounts_and_unknown_fields() -> None:
    store = PositionStore()
    _open_position(store)
    store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSING)
    with pytest.raises(ValueError):
        store.transition(_KEY, PositionStatus.CLOSING, PositionStatus.OPEN, quantity=-1)
    with pytest.raises(ValueError):
        store.transition(_KEY, PositionStatus.CLOSING, PositionStatus.OPEN, owner="someone")
    assert store.get(_KEY).status == PositionStatus.CLOSING  # type: ignore[union-attr]


def test_missing_position_raises_not_found() -> None:
    store = PositionStore()
    with pytest.raises(PositionNotFound):
        store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSING)
    with pytest.raises(PositionNotFound):
        store.remove(_KEY)


def test_returned_positions_are_copies() -> None:
    store = PositionStore()
    _open_position(store)
    copy = store.get(_KEY)
    assert copy is not None
    copy.quantity = 1
    assert store.get(_KEY).quantity == 2_000_000  # type: ignore[union-attr]


def test_mark_unconfirmed_and_list() -> None:
    store = PositionStore()
    store.open(_pending())
    store.mark_unconfirmed(_KEY, PositionStatus.PENDING, "sig-x")
    flagged = store.list_unconfirmed()
    assert len(flagged) == 1
    assert flagged[0].last_signature == "sig-x"
    with pytest.raises(InvalidTransition):
        store.mark_unconfirmed(_KEY, PositionStatus.OPEN, "sig-y")


def test_list_positions_filters_by_owner() -> None:
    store = PositionStore()
    store.open(_pending())
    store.open(_pending(owner="owner2"))
    assert len(store.list_positions()) == 2
    assert [p.owner for p in store.list_positions("owner2")] == ["owner2"]


def test_concurrent_closing_transition_has_single_winner() -> None:
    store = PositionStore()
    _open_position(store)
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        try:
            store.transition(_KEY, PositionStatus.OPEN, PositionStatus.CLOSING)
            result = "won"
        except InvalidTransition:
            result = "lost"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("won") == 1
    assert outcomes.count("lost") == 7
