"""
models/scroll_event.py — SQLAlchemy ORM for scroll-depth events.

Table: scroll_events
The capture script only reports a scroll when the page's maximum depth grows,
so max_scroll_depth is monotonic within one page view.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from telemetry.database import Base


class ScrollEventORM(Base):
    __tablename__ = "scroll_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="UUID row identifier",
    )
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    scroll_depth_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_scroll_depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    viewport_height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
