"""
models/session.py — SQLAlchemy ORM model for browsing session summaries.

Table: sessions

Keyed by session_id, written only by session_end events (upsert). start_time is
derived as end_time - duration, an approximation of when the tab was opened,
not the timestamp of the session's first event.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from telemetry.database import Base


class SessionORM(Base):
    """
    ORM model for one browsing session.

    page_count:   always 1; the capture script keeps one session per tab load.
    total_clicks: click counter reported by the latest session_end event.
    """
    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(
        Text,
        primary_key=True,
        comment="Opaque session identifier supplied by the capture script",
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Seconds between tab load and unload",
    )
    page_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_scroll_depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
