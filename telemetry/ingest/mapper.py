"""
Row mapper — validated Event → one storage row.

Pure: no I/O, no clock reads. Everything time-dependent comes in through
RequestContext.received_at so tests can pin it.

Destination tables:
  page_view   → page_views      (insert)
  click       → clicks          (insert)
  scroll      → scroll_events   (insert)
  session_end → sessions        (upsert keyed by session_id)
  custom      → custom_events   (insert)

session_end approximation:
  start_time = received_at - duration, end_time = received_at.
  This is the tab's load time as the browser measured it, NOT the time of the
  session's first stored event; clock skew and bfcache restores make it drift.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from telemetry.errors import MappingError
from telemetry.ingest.schemas import (
    ClickEvent,
    CustomEvent,
    Event,
    PageViewEvent,
    RequestContext,
    ScrollEvent,
    SessionEndEvent,
)

INT32_MAX = 2**31 - 1


class MappedRow(BaseModel):
    """One row bound for one table. upsert_key is set only for keyed tables."""
    model_config = ConfigDict(frozen=True)

    table: str
    values: Dict[str, Any]
    upsert_key: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        """values with datetimes rendered as ISO-8601, for echoing back to clients."""
        return {
            k: v.isoformat() if isinstance(v, datetime) else v
            for k, v in self.values.items()
        }


def _common(event: Event, context: RequestContext) -> Dict[str, Any]:
    return {
        "session_id": event.session_id,
        "user_id": event.user_id,
        "page_url": event.page_url,
        "timestamp": event.timestamp or context.received_at,
    }


def _check_int32(field: str, value: int) -> int:
    if value > INT32_MAX or value < -INT32_MAX - 1:
        raise MappingError(
            "Event could not be converted to a storage row",
            details=[{"field": field, "issue": f"Value {value} does not fit a 32-bit column"}],
        )
    return value


def _map_page_view(event: PageViewEvent, context: RequestContext) -> MappedRow:
    return MappedRow(
        table="page_views",
        values={
            **_common(event, context),
            "page_title": event.page_title,
            "referrer": event.referrer,
            "user_agent": event.user_agent or context.user_agent,
            "ip_address": context.client_ip or "0.0.0.0",
            "load_time": event.load_time,
        },
    )


def _map_click(event: ClickEvent, context: RequestContext) -> MappedRow:
    return MappedRow(
        table="clicks",
        values={
            **_common(event, context),
            "element_type": event.element_type,
            "element_id": event.element_id,
            "element_class": event.element_class,
            "element_text": event.element_text,
            "click_x": _check_int32("click_x", event.click_x),
            "click_y": _check_int32("click_y", event.click_y),
        },
    )


def _map_scroll(event: ScrollEvent, context: RequestContext) -> MappedRow:
    return MappedRow(
        table="scroll_events",
        values={
            **_common(event, context),
            "scroll_depth_percent": event.scroll_depth_percent,
            "max_scroll_depth": event.max_scroll_depth,
            "page_height": _check_int32("page_height", event.page_height),
            "viewport_height": _check_int32("viewport_height", event.viewport_height),
        },
    )


def _map_session_end(event: SessionEndEvent, context: RequestContext) -> MappedRow:
    duration = _check_int32("duration", event.duration)
    end_time = context.received_at
    try:
        start_time = end_time - timedelta(seconds=duration)
    except OverflowError as exc:
        raise MappingError(
            "Event could not be converted to a storage row",
            details=[{"field": "duration", "issue": f"Session start time out of range: {exc}"}],
        ) from exc

    return MappedRow(
        table="sessions",
        upsert_key="session_id",
        values={
            "session_id": event.session_id,
            "user_id": event.user_id,
            "start_time": start_time,
            "end_time": end_time,
            "duration": duration,
            "page_count": 1,
            "total_clicks": _check_int32("click_count", event.click_count),
            "max_scroll_depth": event.max_scroll_depth,
            "timestamp": end_time,
        },
    )


def _map_custom(event: CustomEvent, context: RequestContext) -> MappedRow:
    return MappedRow(
        table="custom_events",
        values={
            **_common(event, context),
            "event_name": event.event_name,
            "properties": event.properties,
        },
    )


_MAPPERS: Dict[str, Callable[[Any, RequestContext], MappedRow]] = {
    "page_view": _map_page_view,
    "click": _map_click,
    "scroll": _map_scroll,
    "session_end": _map_session_end,
    "custom": _map_custom,
}


def map_event(event: Event, context: RequestContext) -> MappedRow:
    """
    Convert a validated event to the row for its destination table.

    Raises:
        MappingError: a value cannot be represented in its column
            (e.g. duration so large that start_time underflows).
    """
    return _MAPPERS[event.type](event, context)
