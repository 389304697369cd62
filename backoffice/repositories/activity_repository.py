"""
Activity repository (persistence).

The activity log is append-only: insert and read, nothing else.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from backoffice.domain.activity import Activity, ActivityType
from backoffice.domain.time import parse_utc_datetime, to_iso_utc

from .store import ACTIVITIES, Document, Reader, Transaction


def activity_to_row(activity: Activity) -> Document:
    return {
        "id": activity.activity_id,
        "type": activity.type.value,
        "message": activity.message,
        "user_id": activity.user_id,
        "user_name": activity.user_name,
        "entity_id": activity.entity_id,
        "entity_type": activity.entity_type,
        "metadata": dict(activity.metadata),
        "created_at_utc": to_iso_utc(activity.created_at, name="created_at"),
    }


def row_to_activity(row: Mapping[str, Any]) -> Activity:
    return Activity(
        activity_id=str(row["id"]),
        type=ActivityType(str(row["type"])),
        message=str(row["message"]),
        user_id=str(row["user_id"]),
        user_name=str(row["user_name"]),
        entity_id=row.get("entity_id"),
        entity_type=row.get("entity_type"),
        metadata=dict(row.get("metadata") or {}),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def insert_activity(tx: Transaction, activity: Activity) -> None:
    tx.insert(ACTIVITIES, activity_to_row(activity))


def list_activities(
    reader: Reader,
    *,
    types: Optional[List[ActivityType]] = None,
    entity_id: Optional[str] = None,
    user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[Activity]:
    """
    List activities newest first.

    Equality filters (entity_id, user_id) are pushed down to the store; type
    and date filters are applied here.
    """

    filters = {}
    if entity_id is not None:
        filters["entity_id"] = entity_id
    if user_id is not None:
        filters["user_id"] = user_id

    activities = [row_to_activity(row) for row in reader.query(ACTIVITIES, **filters)]
    if types:
        wanted = set(types)
        activities = [a for a in activities if a.type in wanted]
    if start is not None:
        activities = [a for a in activities if a.created_at >= start]
    if end is not None:
        activities = [a for a in activities if a.created_at <= end]

    activities.sort(key=lambda a: a.created_at, reverse=True)
    if limit is not None:
        activities = activities[:limit]
    return activities


__all__ = [
    "activity_to_row",
    "row_to_activity",
    "insert_activity",
    "list_activities",
]
