"""
Domain: Follow-up tasks.

A follow-up task is created once per order at order creation and is
completed at most once, normally by the first payment received.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .time import require_utc_timestamp

FOLLOW_UP = "follow_up"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CompletionReason(str, Enum):
    PAYMENT_RECEIVED = "payment_received"
    MANUAL = "manual"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class TaskAssignee:
    user_id: str
    user_name: str
    assigned_at: datetime


@dataclass(frozen=True, slots=True)
class TaskMetadata:
    type: str = "general"
    auto_created: bool = False
    completed_reason: Optional[CompletionReason] = None
    payment_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Task:
    task_id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime
    created_by: str
    created_at: datetime
    assignees: Tuple[TaskAssignee, ...] = ()
    order_id: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    completed_at: Optional[datetime] = None
    metadata: TaskMetadata = TaskMetadata()

    def __post_init__(self) -> None:
        require_utc_timestamp("due_date", self.due_date)
        require_utc_timestamp("created_at", self.created_at)
        if self.completed_at is not None:
            require_utc_timestamp("completed_at", self.completed_at)

    @property
    def is_open_follow_up(self) -> bool:
        return self.status is not TaskStatus.COMPLETED and self.metadata.type == FOLLOW_UP

    def completed(
        self,
        *,
        completed_at: datetime,
        reason: CompletionReason,
        payment_id: Optional[str] = None,
    ) -> "Task":
        """Return the completed version of this task; completing twice is an error."""

        require_utc_timestamp("completed_at", completed_at)
        if self.status is TaskStatus.COMPLETED:
            raise ValueError(f"Task {self.task_id} is already completed")
        metadata = replace(self.metadata, completed_reason=reason, payment_id=payment_id)
        return replace(self, status=TaskStatus.COMPLETED, completed_at=completed_at, metadata=metadata)
