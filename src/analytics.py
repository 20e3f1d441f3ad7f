"""Bounded routing history and the aggregates that feed back into routing."""
from __future__ import annotations

import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from models import RoutingLogEntry

RECENT_LIMIT = 10


@dataclass
class AnalyticsSummary:
    total: int = 0
    avg_execution_ms: float = 0.0
    success_rate: float = 0.0
    handler_usage: Dict[str, int] = field(default_factory=dict)
    recent: List[RoutingLogEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "avg_execution_ms": round(self.avg_execution_ms, 2),
            "success_rate": round(self.success_rate, 4),
            "handler_usage": dict(self.handler_usage),
            "recent": [
                {
                    "text": entry.text,
                    "handlers": entry.decision.selected_names,
                    "success": entry.success,
                    "execution_ms": entry.execution_ms,
                    "timestamp": entry.timestamp.isoformat(),
                }
                for entry in self.recent
            ],
        }


class RoutingAnalytics:
    """Ring buffer of routing log entries; oldest entries are evicted at capacity."""

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: Deque[RoutingLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, entry: RoutingLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def snapshot(self) -> List[RoutingLogEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def summary(self) -> AnalyticsSummary:
        entries = self.snapshot()
        if not entries:
            return AnalyticsSummary()

        usage: Counter = Counter()
        for entry in entries:
            usage.update(result.handler for result in entry.results)

        return AnalyticsSummary(
            total=len(entries),
            avg_execution_ms=sum(entry.execution_ms for entry in entries) / len(entries),
            success_rate=sum(1 for entry in entries if entry.success) / len(entries),
            handler_usage=dict(usage),
            recent=entries[-RECENT_LIMIT:],
        )

    def handler_success_rate(self, name: str) -> Optional[float]:
        """Fraction of recorded invocations of this handler that succeeded; None without data."""
        outcomes = [
            result.success
            for entry in self.snapshot()
            for result in entry.results
            if result.handler == name
        ]
        if not outcomes:
            return None
        return sum(1 for ok in outcomes if ok) / len(outcomes)
