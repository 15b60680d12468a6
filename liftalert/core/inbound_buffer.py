"""Bounded record of recent inbound traffic for operator debugging.

Owned by the application (`app.state.inbound_buffer`), never module-global.
Not authoritative for anything: the audit log is the source of truth.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any


class InboundBuffer:
    def __init__(self, maxlen: int = 50):
        self._items: deque[dict[str, Any]] = deque(maxlen=max(maxlen, 1))
        self._lock = threading.Lock()

    def record(self, source: str, summary: dict[str, Any]) -> None:
        entry = {
            "source": source,
            "received_at": datetime.now(timezone.utc).isoformat(),
            **summary,
        }
        with self._lock:
            self._items.append(entry)

    def latest(self, limit: int | None = None, source: str | None = None) -> list[dict[str, Any]]:
        """Most recent first."""
        with self._lock:
            items = list(reversed(self._items))
        if source:
            items = [item for item in items if item["source"] == source]
        if limit is not None:
            items = items[:limit]
        return items

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
