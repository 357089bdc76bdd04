"""
models/click.py — SQLAlchemy ORM for click events.

Table: clicks
One row per click. element_text is capped at 100 characters before it gets here.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from telemetry.database import Base


class ClickORM(Base):
    __tablename__ = "clicks"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="UUID row identifier",
    )
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    element_type: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Lower-cased tag name of the click target, e.g. button, a, div",
    )
    element_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    element_class: Mapped[str] = mapped_column(Text, nullable=False, default="")
    element_text: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    click_x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    click_y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
