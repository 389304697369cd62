"""
Sales leaderboard service.

Loads the history the leaderboard needs (orders, payments, customers and the
activity log for display names) and hands it to the pure aggregator. Reads are
plain store reads, not a unit of work: the result is a point-in-time report.
"""

from __future__ import annotations

import logging
from typing import List

from backoffice.domain.leaderboard import LeaderboardEntry, LeaderboardWindow, compute_leaderboard
from backoffice.repositories.activity_repository import list_activities
from backoffice.repositories.customer_repository import list_customers
from backoffice.repositories.order_repository import list_orders
from backoffice.repositories.payment_repository import list_all_payments
from backoffice.repositories.store import DocumentStore

logger = logging.getLogger(__name__)


class SalesLeaderboard:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def compute(self, window: LeaderboardWindow) -> List[LeaderboardEntry]:
        entries = compute_leaderboard(
            window,
            orders=list_orders(self._store),
            payments=list_all_payments(self._store),
            customers=list_customers(self._store),
            activities=list_activities(self._store),
        )
        logger.info(
            "Leaderboard computed",
            extra={
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
                "entries": len(entries),
            },
        )
        return entries


__all__ = ["SalesLeaderboard"]
