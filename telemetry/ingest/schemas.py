"""
schemas.py — Ingest Pydantic v2 data contracts.

Defines:
  - PageViewEvent, ClickEvent, ScrollEvent, SessionEndEvent, CustomEvent
  - Event        (discriminated union on "type"; the only thing routes accept)
  - RequestContext (server-side facts about the request, fed to the mapper)

The producer is an uncontrolled browser script, so the contracts are permissive:
  - Unknown keys are ignored (extra="ignore"), never rejected.
  - null is treated as "absent": optional strings fall back to "", numbers to 0.
  - Scroll percentages are clamped into 0..100 (iOS overscroll reports >100 / <0).
  - Fractional pixel coordinates are rounded (MouseEvent.clientX is a double).
Required identifiers (session_id, user_id, page_url for page-scoped events) must
be present AND non-empty.
"""
import math
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

ELEMENT_TEXT_MAX_LENGTH = 100
EVENT_TYPES = ("page_view", "click", "scroll", "session_end", "custom")


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------

def _as_text(value: Any) -> Any:
    """Coerce scalar values to str; SVG className arrives as {"baseVal": "..."}."""
    if isinstance(value, dict) and "baseVal" in value:
        return str(value["baseVal"])
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _round_number(value: Any) -> Any:
    if isinstance(value, float) and math.isfinite(value):
        return round(value)
    return value


def _clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def _reject_non_finite(value: Any) -> Any:
    """Reject inf/nan anywhere in a JSON value; json.loads maps 1e400 and Infinity to inf."""
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("Numbers must be finite")
    if isinstance(value, dict):
        for item in value.values():
            _reject_non_finite(item)
    elif isinstance(value, list):
        for item in value:
            _reject_non_finite(item)
    return value


Text = Annotated[str, BeforeValidator(_as_text)]
ElementText = Annotated[
    str,
    BeforeValidator(_as_text),
    AfterValidator(lambda s: s[:ELEMENT_TEXT_MAX_LENGTH]),
]
Pixels = Annotated[int, BeforeValidator(_round_number)]
Percent = Annotated[int, BeforeValidator(_round_number), AfterValidator(_clamp_percent)]
Identifier = Annotated[str, BeforeValidator(_as_text), Field(min_length=1)]


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------

class _EventBase(BaseModel):
    """Fields shared by every event. page_url is required unless a variant overrides it."""
    model_config = ConfigDict(extra="ignore")

    session_id: Identifier
    user_id: Identifier
    page_url: Annotated[Text, Field(min_length=1)]
    timestamp: Optional[datetime] = Field(
        default=None,
        description="When the browser observed the event. Receipt time is used if omitted.",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("timestamp")
    @classmethod
    def _normalize_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class PageViewEvent(_EventBase):
    type: Literal["page_view"]

    page_title: Text = ""
    referrer: Text = ""
    user_agent: Text = ""
    load_time: float = Field(
        default=0.0,
        ge=0,
        allow_inf_nan=False,
        description="Milliseconds (performance.now()).",
    )


class ClickEvent(_EventBase):
    type: Literal["click"]

    element_type: Annotated[Text, Field(min_length=1)]
    element_id: Text = ""
    element_class: Text = ""
    element_text: ElementText = ""
    click_x: Pixels = 0
    click_y: Pixels = 0


class ScrollEvent(_EventBase):
    type: Literal["scroll"]

    scroll_depth_percent: Percent = 0
    max_scroll_depth: Percent = 0
    page_height: Annotated[Pixels, Field(ge=0)] = 0       # 0 = not reported
    viewport_height: Annotated[Pixels, Field(ge=0)] = 0


class SessionEndEvent(_EventBase):
    """Sent from beforeunload via sendBeacon; carries no page_url in practice."""
    type: Literal["session_end"]

    page_url: Text = ""
    duration: int = Field(..., ge=0, description="Seconds since the tab loaded.")
    click_count: int = Field(default=0, ge=0)
    max_scroll_depth: Percent = 0


class CustomEvent(_EventBase):
    type: Literal["custom"]

    page_url: Text = ""
    event_name: Annotated[Text, Field(min_length=1, max_length=100)]
    properties: Annotated[Dict[str, Any], AfterValidator(_reject_non_finite)] = Field(
        default_factory=dict,
    )


Event = Annotated[
    Union[PageViewEvent, ClickEvent, ScrollEvent, SessionEndEvent, CustomEvent],
    Field(discriminator="type"),
]
EventAdapter: TypeAdapter[Event] = TypeAdapter(Event)


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

class RequestContext(BaseModel):
    """Server-side facts about one ingest request. Never supplied by the client."""
    model_config = ConfigDict(frozen=True)

    received_at: datetime
    client_ip: str = "0.0.0.0"
    user_agent: str = ""
