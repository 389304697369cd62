"""
Notification sink and in-memory notification feed.

The engine hands user-facing alerts to a NotificationSink after the unit of
work that produced them has committed. Sinks are fire-and-forget: the engine
logs and swallows any exception they raise.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Deque, List, Optional, Protocol
from uuid import uuid4

from backoffice.domain.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    notification_id: str
    message: str
    category: str  # payment, order, status
    created_at: datetime
    read: bool = False
    link: Optional[str] = None


class NotificationSink(Protocol):
    def notify(self, message: str, category: str, link: Optional[str] = None) -> None:
        ...


class NotificationFeed:
    """
    Bounded most-recent-first feed, used as the default sink.

    Keeps the newest `max_items` notifications (20 unless configured).
    """

    def __init__(self, max_items: int = 20) -> None:
        self._items: Deque[Notification] = deque(maxlen=max_items)
        self._lock = threading.Lock()

    def notify(self, message: str, category: str, link: Optional[str] = None) -> None:
        notification = Notification(
            notification_id=uuid4().hex,
            message=message,
            category=category,
            created_at=utc_now(),
            link=link,
        )
        with self._lock:
            self._items.appendleft(notification)
        logger.debug("Notification queued", extra={"category": category, "notification_id": notification.notification_id})

    def recent(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._items if not n.read)

    def mark_as_read(self, notification_id: str) -> bool:
        with self._lock:
            for index, item in enumerate(self._items):
                if item.notification_id == notification_id:
                    self._items[index] = replace(item, read=True)
                    return True
        return False

    def mark_all_as_read(self) -> None:
        with self._lock:
            for index, item in enumerate(self._items):
                self._items[index] = replace(item, read=True)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


__all__ = ["Notification", "NotificationSink", "NotificationFeed"]
