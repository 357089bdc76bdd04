"""
models/__init__.py — imports all ORM models so Base.metadata sees every
table before create_all() runs at startup.
"""
from telemetry.models.page_view import PageViewORM
from telemetry.models.click import ClickORM
from telemetry.models.scroll_event import ScrollEventORM
from telemetry.models.session import SessionORM
from telemetry.models.custom_event import CustomEventORM

__all__ = ["PageViewORM", "ClickORM", "ScrollEventORM", "SessionORM", "CustomEventORM"]
