"""
Reporting API Endpoints.

Sales leaderboard and the in-memory notification feed.
"""

from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Query

from backoffice.api.dependencies import EngineDep, to_http_exception
from backoffice.api.models import (
    LeaderboardEntryResponse,
    LeaderboardResponse,
    NotificationListResponse,
    NotificationResponse,
)
from backoffice.domain.errors import BackOfficeError
from backoffice.domain.leaderboard import LeaderboardWindow
from backoffice.domain.time import parse_utc_datetime, utc_now
from backoffice.engine import BackOffice

router = APIRouter()


@router.get(
    "/leaderboard",
    response_model=LeaderboardResponse,
    summary="Sales Leaderboard",
)
def get_leaderboard(
    start: datetime = Query(None, description="Window start (inclusive); defaults to 30 days ago"),
    end: datetime = Query(None, description="Window end (inclusive); defaults to now"),
    engine: BackOffice = EngineDep,
):
    """
    Rank staff by weighted score over the window.

    **Score:** paid_revenue x 0.6 + new_orders_value x 0.1 + conversion_rate x 0.3

    Orders without a creator fall back to the customer's creator; anything
    still unowned is reported under `unattributed`, which is always last.
    """
    window_end = parse_utc_datetime(end) if end is not None else utc_now()
    window_start = parse_utc_datetime(start) if start is not None else window_end - timedelta(days=30)
    try:
        window = LeaderboardWindow(start=window_start, end=window_end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        entries = engine.compute_leaderboard(window)
    except BackOfficeError as e:
        raise to_http_exception(e) from e

    return LeaderboardResponse(
        start=window.start,
        end=window.end,
        entries=[LeaderboardEntryResponse.from_domain(entry) for entry in entries],
    )


@router.get(
    "/notifications",
    response_model=NotificationListResponse,
    summary="Recent Notifications",
)
def list_notifications(engine: BackOffice = EngineDep):
    return NotificationListResponse(
        items=[NotificationResponse.from_domain(n) for n in engine.notifications.recent()],
        unread_count=engine.notifications.unread_count(),
    )


@router.post(
    "/notifications/read",
    status_code=204,
    summary="Mark All Notifications Read",
)
def mark_notifications_read(engine: BackOffice = EngineDep):
    engine.notifications.mark_all_as_read()
