"""JSONL journal store for trade and monitor events."""

from __future__ import annotations

import json
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

_ALLOWED_EVENT_TYPES = {
    "buy",
    "sell",
    "reconcile",
    "exit_trigger",
    "monitor_tick",
    "error",
}


class JournalStore:
    """Append-only JSONL event store, one file per UTC day."""

    def __init__(self, journal_dir: Path) -> None:
        self._journal_dir = journal_dir
        self._journal_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(self, event_type: str, payload: dict[str, Any]) -> None:
        """Append one event line to daily JSONL file."""
        if event_type not in _ALLOWED_EVENT_TYPES:
            raise ValueError(f"unsupported_event_type: {event_type}")
        now = datetime.now(timezone.utc)
        record = {
            "timestamp": now.isoformat(),
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, ensure_ascii=True, default=str) + "\n"
        file_path = self._file_path_for_day(now.date())
        with self._lock, file_path.open("a", encoding="utf-8") as f:
            f.write(line)

    def load_recent(self, limit: int, event_type: str | None = None) -> list[dict[str, Any]]:
        """Newest `limit` events in chronological order, optionally of one type."""
        if limit <= 0:
            return []

        rows: list[dict[str, Any]] = []
        for file in sorted(self._journal_dir.glob("*.jsonl"), reverse=True):
            for line in reversed(file.read_text(encoding="utf-8").splitlines()):
                if not line.strip():
                    continue
                record = json.loads(line)
                if event_type is not None and record.get("event_type") != event_type:
                    continue
                rows.append(record)
                if len(rows) >= limit:
                    return list(reversed(rows))
        return list(reversed(rows))

    def _file_path_for_day(self, day: date) -> Path:
        return self._journal_dir / f"{day.isoformat()}.jsonl"
