"""
Ingest validator — turns a raw request body into a typed Event.

Two steps, both raising telemetry.errors.ValidationError with every violation
collected as {"field", "issue"} dicts so the route can build the standard
400 envelope in one pass:

  1. decode_body()  bytes → JSON value. Content-Type is ignored on purpose:
                    navigator.sendBeacon() posts the JSON as text/plain.
  2. parse_event()  JSON value → PageViewEvent | ClickEvent | ... via the
                    discriminated union in schemas.py.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from telemetry.errors import ValidationError
from telemetry.ingest.schemas import EVENT_TYPES, Event, EventAdapter

logger = logging.getLogger(__name__)


def decode_body(raw: bytes) -> Any:
    """Decode a UTF-8 JSON request body."""
    if not raw or not raw.strip():
        raise ValidationError(
            "Request body is empty",
            details=[{"field": None, "issue": "Expected a JSON-encoded event"}],
        )
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(
            "Request body is not valid JSON",
            details=[{"field": None, "issue": str(exc)}],
        ) from exc


def _to_details(exc: PydanticValidationError, event_type: str) -> list[dict[str, Any]]:
    """
    Flatten pydantic errors into {field, issue} dicts.

    Discriminated-union errors are located under the tag value, e.g.
    ("click", "click_x"); the tag prefix is stripped so clients see "click_x".
    Errors with no location (unknown tag) are reported against "type".
    """
    details = []
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        if loc and loc[0] == event_type:
            loc = loc[1:]
        details.append({"field": ".".join(loc) or "type", "issue": error["msg"]})
    return details


def parse_event(payload: Any) -> Event:
    """
    Classify and validate one decoded event payload.

    Raises:
        ValidationError: payload is not an object, "type" is missing or unknown,
            or a variant field is missing, empty, mistyped or out of range.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Event payload must be a JSON object",
            details=[{"field": None, "issue": f"Got {type(payload).__name__}"}],
        )

    event_type = payload.get("type")
    if event_type not in EVENT_TYPES:
        issue = (
            "Field required"
            if event_type is None
            else f"Unknown event type {event_type!r}; expected one of {', '.join(EVENT_TYPES)}"
        )
        raise ValidationError("Event validation failed", details=[{"field": "type", "issue": issue}])

    try:
        return EventAdapter.validate_python(payload)
    except PydanticValidationError as exc:
        details = _to_details(exc, event_type)
        logger.info(
            "Rejected %s event: %s",
            event_type,
            ", ".join(str(d["field"]) for d in details),
        )
        raise ValidationError("Event validation failed", details=details) from exc
