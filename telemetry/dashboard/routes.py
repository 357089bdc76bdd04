"""
Dashboard HTTP routes — GET /api/dashboard (alias GET /analytics),
                        GET /api/events/recent

The dashboard fans out four read-only aggregations concurrently, one
AsyncSession each (a single session cannot run overlapping statements), and
waits for ALL of them to settle before answering. Any failure fails the whole
response: there is no partial dashboard.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from telemetry.config import settings
from telemetry.dashboard.schemas import DashboardResponse
from telemetry.database import get_db, get_session_factory
from telemetry.store import (
    get_click_stats,
    get_page_view_stats,
    get_recent_rows,
    get_scroll_stats,
    get_top_pages,
)

router = APIRouter(tags=["dashboard"])
logger = logging.getLogger(__name__)


async def build_dashboard(
    factory: async_sessionmaker[AsyncSession],
    now: datetime,
    window_hours: int,
    top_pages_limit: int,
) -> DashboardResponse:
    """
    Run the four aggregations concurrently and compose them.

    Raises the first failure only after every query has finished, so no query is
    left running against a session that is being torn down.
    """
    since = now - timedelta(hours=window_hours)

    async def _in_session(query: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        async with factory() as session:
            return await query(session, since, *args)

    results = await asyncio.gather(
        _in_session(get_page_view_stats),
        _in_session(get_top_pages, top_pages_limit),
        _in_session(get_click_stats),
        _in_session(get_scroll_stats),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        logger.error("Dashboard aborted: %d of %d queries failed", len(failures), len(results))
        raise failures[0]

    page_views, top_pages, click_stats, scroll_stats = results
    return DashboardResponse(
        page_views=page_views,
        top_pages=top_pages,
        click_stats=click_stats,
        scroll_stats=scroll_stats,
        window_hours=window_hours,
        generated_at=now,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/api/dashboard", response_model=DashboardResponse)
@router.get("/analytics", response_model=DashboardResponse)
async def get_dashboard(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> DashboardResponse:
    """Aggregated activity over the trailing DASHBOARD_WINDOW_HOURS (default 24h)."""
    dashboard = await build_dashboard(
        factory,
        now=datetime.now(timezone.utc),
        window_hours=settings.dashboard_window_hours,
        top_pages_limit=settings.top_pages_limit,
    )
    logger.info(
        "Dashboard served total_views=%d scroll_events=%d",
        dashboard.page_views.total_views,
        dashboard.scroll_stats.scroll_events,
    )
    return dashboard


@router.get("/api/events/recent")
async def get_recent_events(
    table: str = Query("clicks", description="page_views, clicks, scroll_events, sessions or custom_events"),
    limit: int = Query(100, ge=1, le=settings.recent_events_max),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Newest raw rows of one table, newest first. Debug aid for the capture script."""
    rows = await get_recent_rows(db, table, limit)
    return JSONResponse(
        status_code=200,
        content={"status": "OK", "table": table, "count": len(rows), "data": rows},
    )
