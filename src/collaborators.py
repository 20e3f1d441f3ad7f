"""Persistence and notification collaborators consumed by handlers and sweeps."""
from __future__ import annotations

import dataclasses
import itertools
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping

from logging_utils import logger
from models import Priority, RiskLevel, Status, WorkItem, WorkItemKind, parse_timestamp, utcnow

_ENUM_FIELDS = {
    "priority": Priority,
    "status": Status,
    "kind": WorkItemKind,
    "risk": RiskLevel,
}
_TIMESTAMP_FIELDS = ("created_at", "escalated_at")


def _coerce_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    coerced: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in _ENUM_FIELDS and value is not None:
            value = _ENUM_FIELDS[key](value)
        elif key in _TIMESTAMP_FIELDS and value is not None:
            value = parse_timestamp(value)
        coerced[key] = value
    return coerced


class WorkItemStore(ABC):
    """Storage for tickets and access requests. The engine never embeds storage logic."""

    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> Any:
        """Persist a new work item and return its id."""

    @abstractmethod
    def update(self, item_id: Any, fields: Mapping[str, Any]) -> int:
        """Apply a partial update; returns the number of items changed."""

    @abstractmethod
    def find(self, filters: Mapping[str, Any]) -> List[WorkItem]:
        """Return work items whose fields equal every filter value."""


class InMemoryWorkItemStore(WorkItemStore):
    """Process-local store used by tests and the batch CLI."""

    def __init__(self) -> None:
        self._items: Dict[Any, WorkItem] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, fields: Mapping[str, Any]) -> Any:
        with self._lock:
            item_id = fields.get("id") or next(self._ids)
            values = _coerce_fields({k: v for k, v in fields.items() if k != "id"})
            values.setdefault("created_at", utcnow())
            self._items[item_id] = WorkItem(id=item_id, **values)
            return item_id

    def update(self, item_id: Any, fields: Mapping[str, Any]) -> int:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return 0
            self._items[item_id] = dataclasses.replace(item, **_coerce_fields(fields))
            return 1

    def find(self, filters: Mapping[str, Any]) -> List[WorkItem]:
        with self._lock:
            items = list(self._items.values())
        return [item for item in items if all(getattr(item, key, None) == value for key, value in filters.items())]

    def get(self, item_id: Any) -> WorkItem | None:
        with self._lock:
            return self._items.get(item_id)


class Notifier(ABC):
    """Best-effort outbound notifications (email, webhook, chat)."""

    @abstractmethod
    def notify(self, notification_type: str, payload: Mapping[str, Any]) -> None:
        """Deliver a notification; may raise on delivery failure."""


class LogNotifier(Notifier):
    """Notifier that records notifications in the structured log."""

    def notify(self, notification_type: str, payload: Mapping[str, Any]) -> None:
        logger.info(
            "Notification dispatched",
            extra={"extra": {"type": notification_type, "payload": dict(payload)}},
        )


def safe_notify(notifier: Notifier | None, notification_type: str, payload: Mapping[str, Any]) -> bool:
    """Fire-and-forget notify: delivery failures are logged, never raised."""
    if notifier is None:
        return False
    try:
        notifier.notify(notification_type, payload)
        return True
    except Exception as exc:
        logger.warning(
            "Notification delivery failed",
            extra={"extra": {"type": notification_type, "error": str(exc)}},
        )
        return False
