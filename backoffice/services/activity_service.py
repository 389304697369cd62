"""
Activity log service (audit trail).

Every mutation appends an Activity inside the same unit of work as the
mutation itself, so the audit trail commits or rolls back with it.

Payment, order-created and status-change activities are also surfaced as
notifications. Notifications are dispatched only after commit; a failing
sink is logged and never undoes the committed work.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from backoffice.domain.activity import NOTIFYING_TYPES, Activity, ActivityType
from backoffice.domain.time import utc_now
from backoffice.domain.user import ActingUser
from backoffice.repositories.activity_repository import insert_activity, list_activities
from backoffice.repositories.store import Reader, Transaction

from .notifications import NotificationSink

logger = logging.getLogger(__name__)


class _Unserializable(Exception):
    pass


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    raise _Unserializable(type(value).__name__)


def clean_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Drop None values and coerce the rest into JSON-safe values.

    Metadata is side-channel information: a value that cannot be stored is
    dropped with a warning instead of failing the operation.
    """

    cleaned: Dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if value is None:
            continue
        try:
            cleaned[str(key)] = _json_safe(value)
        except _Unserializable as e:
            logger.warning(
                "Dropping unserializable activity metadata",
                extra={"metadata_key": key, "value_type": str(e)},
            )
    return cleaned


class ActivityLog:
    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._sink = sink
        self._clock = clock

    def record(
        self,
        tx: Transaction,
        activity_type: ActivityType,
        actor: ActingUser,
        message: str,
        *,
        entity_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Activity:
        """Append an activity to the unit of work and schedule its notification."""

        activity = Activity(
            activity_id=uuid4().hex,
            type=activity_type,
            message=message,
            user_id=actor.user_id,
            user_name=actor.display_name,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=clean_metadata(metadata),
            created_at=self._clock(),
        )
        insert_activity(tx, activity)

        category = NOTIFYING_TYPES.get(activity_type)
        if category is not None and self._sink is not None:
            tx.after_commit(lambda: self._notify(activity, category))
        return activity

    def _notify(self, activity: Activity, category: str) -> None:
        link = f"/orders/{activity.entity_id}" if activity.entity_type == "order" and activity.entity_id else None
        try:
            self._sink.notify(activity.message, category, link)  # type: ignore[union-attr]
        except Exception:
            logger.warning(
                "Notification dispatch failed",
                extra={"activity_id": activity.activity_id, "activity_type": activity.type.value},
                exc_info=True,
            )

    @staticmethod
    def history(reader: Reader, **filters: Any) -> List[Activity]:
        return list_activities(reader, **filters)


__all__ = ["ActivityLog", "clean_metadata"]
