"""
schemas.py — Dashboard Pydantic v2 response contracts.

Every aggregate is derived at request time over the trailing window and never
persisted. Empty windows produce zero counts and empty lists, not errors.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel


class PageViewStats(BaseModel):
    total_views: int = 0
    unique_sessions: int = 0
    unique_users: int = 0


class TopPage(BaseModel):
    page_url: str
    views: int


class ClickStat(BaseModel):
    element_type: str
    clicks: int


class ScrollStats(BaseModel):
    avg_scroll_depth: float = 0.0    # mean of max_scroll_depth, 0..100
    scroll_events: int = 0


class DashboardResponse(BaseModel):
    """Composite body of GET /api/dashboard — all four aggregates or nothing."""
    page_views: PageViewStats
    top_pages: List[TopPage]
    click_stats: List[ClickStat]
    scroll_stats: ScrollStats
    window_hours: int
    generated_at: datetime
