"""
Task repository (persistence).

Stores follow-up tasks. Business rules (one task per order, complete once)
live in the follow-up service.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from backoffice.domain.task import (
    CompletionReason,
    Task,
    TaskAssignee,
    TaskMetadata,
    TaskPriority,
    TaskStatus,
)
from backoffice.domain.time import parse_optional_utc_datetime, parse_utc_datetime, to_iso_utc

from .store import TASKS, Document, Reader, Transaction


def task_to_row(task: Task) -> Document:
    return {
        "id": task.task_id,
        "title": task.title,
        "status": task.status.value,
        "priority": task.priority.value,
        "due_date_utc": to_iso_utc(task.due_date, name="due_date"),
        "created_by": task.created_by,
        "created_at_utc": to_iso_utc(task.created_at, name="created_at"),
        "completed_at_utc": to_iso_utc(task.completed_at, name="completed_at") if task.completed_at else None,
        "assignees": [
            {
                "user_id": assignee.user_id,
                "user_name": assignee.user_name,
                "assigned_at_utc": to_iso_utc(assignee.assigned_at, name="assigned_at"),
            }
            for assignee in task.assignees
        ],
        "order_id": task.order_id,
        "customer_id": task.customer_id,
        "customer_name": task.customer_name,
        "metadata": {
            "type": task.metadata.type,
            "auto_created": task.metadata.auto_created,
            "completed_reason": task.metadata.completed_reason.value if task.metadata.completed_reason else None,
            "payment_id": task.metadata.payment_id,
        },
    }


def row_to_task(row: Mapping[str, Any]) -> Task:
    metadata = row.get("metadata") or {}
    reason = metadata.get("completed_reason")
    return Task(
        task_id=str(row["id"]),
        title=str(row["title"]),
        status=TaskStatus(str(row["status"])),
        priority=TaskPriority(str(row.get("priority") or TaskPriority.MEDIUM.value)),
        due_date=parse_utc_datetime(row["due_date_utc"]),
        created_by=str(row.get("created_by") or ""),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        completed_at=parse_optional_utc_datetime(row.get("completed_at_utc")),
        assignees=tuple(
            TaskAssignee(
                user_id=str(a["user_id"]),
                user_name=str(a.get("user_name") or ""),
                assigned_at=parse_utc_datetime(a["assigned_at_utc"]),
            )
            for a in row.get("assignees") or []
        ),
        order_id=row.get("order_id"),
        customer_id=row.get("customer_id"),
        customer_name=row.get("customer_name"),
        metadata=TaskMetadata(
            type=str(metadata.get("type") or "general"),
            auto_created=bool(metadata.get("auto_created", False)),
            completed_reason=CompletionReason(reason) if reason else None,
            payment_id=metadata.get("payment_id"),
        ),
    )


def insert_task(tx: Transaction, task: Task) -> None:
    tx.insert(TASKS, task_to_row(task))


def save_task(tx: Transaction, task: Task) -> None:
    tx.update(TASKS, task.task_id, task_to_row(task))


def get_task_by_id(reader: Reader, task_id: str) -> Optional[Task]:
    row = reader.get(TASKS, task_id)
    return row_to_task(row) if row is not None else None


def list_tasks_by_order(reader: Reader, order_id: str) -> List[Task]:
    tasks = [row_to_task(row) for row in reader.query(TASKS, order_id=order_id)]
    return sorted(tasks, key=lambda task: task.created_at)


__all__ = [
    "task_to_row",
    "row_to_task",
    "insert_task",
    "save_task",
    "get_task_by_id",
    "list_tasks_by_order",
]
