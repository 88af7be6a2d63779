from __future__ import annotations

from pathlib import Path

import pytest

from swap_trader.journal.store import JournalStore


def test_append_and_load_recent(tmp_path: Path) -> None:
    store = JournalStore(tmp_path / "journal")
    store.append("buy", {"asset": "A"})
    store.append("sell", {"asset": "A", "profit": 1.5})
    store.append("buy", {"asset": "B"})

    recent = store.load_recent(2)
    assert [r["event_type"] for r in recent] == ["sell", "buy"]
    assert [r["payload"]["asset"] for r in store.load_recent(10, event_type="buy")] == ["A", "B"]
    assert store.load_recent(0) == []
    assert len(list((tmp_path / "journal").glob("*.jsonl"))) == 1


def test_rejects_unknown_event_type(tmp_path: Path) -> None:
    store = JournalStore(tmp_path)
    with pytest.raises(ValueError):
        store.append("candidate", {})
