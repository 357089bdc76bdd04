"""
models/page_view.py — SQLAlchemy ORM for page view events.

Table: page_views
One row per page load reported by the capture script. Read by the dashboard's
page-view totals and top-pages aggregations.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from telemetry.database import Base


class PageViewORM(Base):
    __tablename__ = "page_views"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="UUID row identifier",
    )
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    page_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    referrer: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ip_address: Mapped[str] = mapped_column(
        String(45),
        nullable=False,
        default="0.0.0.0",
        comment="Client address of the ingest request (IPv4 or IPv6)",
    )
    load_time: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Milliseconds from navigation start, as reported by the browser",
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
