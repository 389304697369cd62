"""
Follow-up task engine.

Handles:
- Creating exactly one follow-up task per order when the order is created
- Completing that task when the order's first payment arrives

Both run inside the caller's unit of work, so a task is never created for an
order that failed to persist and never completed for a payment that rolled back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import uuid4

from backoffice.domain.activity import ActivityType
from backoffice.domain.order import Order
from backoffice.domain.task import (
    FOLLOW_UP,
    CompletionReason,
    Task,
    TaskAssignee,
    TaskMetadata,
    TaskPriority,
    TaskStatus,
)
from backoffice.domain.time import utc_now
from backoffice.domain.user import ActingUser
from backoffice.repositories.store import Reader, Transaction
from backoffice.repositories.task_repository import insert_task, list_tasks_by_order, save_task

from .activity_service import ActivityLog

logger = logging.getLogger(__name__)


def find_open_follow_up(reader: Reader, order_id: str) -> Optional[Task]:
    for task in list_tasks_by_order(reader, order_id):
        if task.is_open_follow_up:
            return task
    return None


class FollowUpTaskEngine:
    def __init__(
        self,
        activity_log: ActivityLog,
        follow_up_days: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._activity_log = activity_log
        self._follow_up_days = follow_up_days
        self._clock = clock

    def create_for_order(self, tx: Transaction, order: Order, actor: ActingUser) -> Task:
        """Create the order's follow-up task, assigned to the creating user."""

        now = self._clock()
        customer_name = order.customer_name or "Unknown"
        task = Task(
            task_id=uuid4().hex,
            title=f"Follow Up Client: {customer_name}",
            status=TaskStatus.PENDING,
            priority=TaskPriority.MEDIUM,
            due_date=now + timedelta(days=self._follow_up_days),
            created_by=actor.user_id,
            created_at=now,
            assignees=(TaskAssignee(user_id=actor.user_id, user_name=actor.display_name, assigned_at=now),),
            order_id=order.order_id,
            customer_id=order.customer_id,
            customer_name=customer_name,
            metadata=TaskMetadata(type=FOLLOW_UP, auto_created=True),
        )
        insert_task(tx, task)

        self._activity_log.record(
            tx,
            ActivityType.TASK_CREATED,
            actor,
            f"Created follow-up task for order {order.order_id}",
            entity_id=task.task_id,
            entity_type="task",
            metadata={"task_id": task.task_id, "order_id": order.order_id, "due_date": task.due_date},
        )
        logger.info(
            "Follow-up task created",
            extra={"task_id": task.task_id, "order_id": order.order_id, "due_date": task.due_date.isoformat()},
        )
        return task

    def complete_on_payment(
        self,
        tx: Transaction,
        order_id: str,
        payment_id: str,
        actor: ActingUser,
    ) -> Optional[Task]:
        """
        Complete the order's open follow-up task, if any.

        Called only for an order's first payment. Returns None when there is no
        open follow-up (already completed manually, or never created).
        """

        task = find_open_follow_up(tx, order_id)
        if task is None:
            logger.info("No open follow-up task to complete", extra={"order_id": order_id})
            return None

        completed = task.completed(
            completed_at=self._clock(),
            reason=CompletionReason.PAYMENT_RECEIVED,
            payment_id=payment_id,
        )
        save_task(tx, completed)

        self._activity_log.record(
            tx,
            ActivityType.TASK_COMPLETED,
            actor,
            f"Follow-up task for order {order_id} completed: payment received",
            entity_id=task.task_id,
            entity_type="task",
            metadata={
                "task_id": task.task_id,
                "order_id": order_id,
                "completed_reason": CompletionReason.PAYMENT_RECEIVED,
                "payment_id": payment_id,
            },
        )
        logger.info(
            "Follow-up task completed",
            extra={"task_id": task.task_id, "order_id": order_id, "payment_id": payment_id},
        )
        return completed

    @staticmethod
    def get_follow_up_task(reader: Reader, order_id: str) -> Optional[Task]:
        """The order's follow-up task, open or completed."""

        for task in list_tasks_by_order(reader, order_id):
            if task.metadata.type == FOLLOW_UP:
                return task
        return None


__all__ = ["FollowUpTaskEngine", "find_open_follow_up"]
