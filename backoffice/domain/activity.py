"""
Domain: Activity (audit trail) records.

Activities are append-only. They feed the notification stream and give the
sales leaderboard its staff names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from .time import require_utc_timestamp


class ActivityType(str, Enum):
    STATUS_CHANGE = "status_change"
    PAYMENT = "payment"
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_DELETED = "order_deleted"
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_UPDATED = "customer_updated"
    COMMUNICATION_ADDED = "communication_added"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"


# Activity types surfaced to users as notifications, with their category.
NOTIFYING_TYPES: Mapping[ActivityType, str] = {
    ActivityType.PAYMENT: "payment",
    ActivityType.ORDER_CREATED: "order",
    ActivityType.STATUS_CHANGE: "status",
}


@dataclass(frozen=True, slots=True)
class Activity:
    activity_id: str
    type: ActivityType
    message: str
    user_id: str
    user_name: str
    created_at: datetime
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if not self.message:
            raise ValueError("activity message is required")
        if not self.user_id or not self.user_name:
            raise ValueError("activity user_id and user_name are required")
