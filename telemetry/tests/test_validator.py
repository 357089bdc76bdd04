"""
Event schema & validator tests — pure, no database.

Groups:
  1. Body decoding (JSON, text/plain beacons, garbage)
  2. Classification by "type"
  3. Required fields and wrong types → ValidationError with field details
  4. Permissive defaults for partial browser payloads
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from telemetry.errors import ValidationError
from telemetry.ingest.schemas import (
    ClickEvent,
    CustomEvent,
    PageViewEvent,
    ScrollEvent,
    SessionEndEvent,
)
from telemetry.ingest.validator import decode_body, parse_event

BASE = {"session_id": "s1", "user_id": "u1", "page_url": "/x"}


def _fields(exc_info) -> set:
    return {d["field"] for d in exc_info.value.details}


# ===========================================================================
# Group 1: decoding
# ===========================================================================

def test_decode_body_accepts_json_bytes() -> None:
    assert decode_body(b'{"type": "click"}') == {"type": "click"}


@pytest.mark.parametrize("raw", [b"", b"   ", b"{not json", b"\xff\xfe"])
def test_decode_body_rejects_empty_and_malformed(raw: bytes) -> None:
    with pytest.raises(ValidationError):
        decode_body(raw)


@pytest.mark.parametrize("payload", [[BASE], "click", 42, None])
def test_parse_event_rejects_non_objects(payload) -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event(payload)
    assert "JSON object" in exc_info.value.message


# ===========================================================================
# Group 2: classification
# ===========================================================================

@pytest.mark.parametrize(
    "payload, expected_cls",
    [
        ({**BASE, "type": "page_view"}, PageViewEvent),
        ({**BASE, "type": "click", "element_type": "button"}, ClickEvent),
        ({**BASE, "type": "scroll"}, ScrollEvent),
        ({"session_id": "s1", "user_id": "u1", "type": "session_end", "duration": 30}, SessionEndEvent),
        ({"session_id": "s1", "user_id": "u1", "type": "custom", "event_name": "signup"}, CustomEvent),
    ],
)
def test_each_known_type_maps_to_its_variant(payload, expected_cls) -> None:
    assert isinstance(parse_event(payload), expected_cls)


def test_unknown_type_is_rejected_against_type_field() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "hover"})
    assert _fields(exc_info) == {"type"}
    assert "hover" in exc_info.value.details[0]["issue"]


def test_missing_type_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event(BASE)
    assert _fields(exc_info) == {"type"}


# ===========================================================================
# Group 3: required fields and types
# ===========================================================================

def test_page_view_without_identifiers_lists_every_missing_field() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({"type": "page_view"})
    assert {"session_id", "user_id", "page_url"} <= _fields(exc_info)


def test_empty_session_id_counts_as_missing() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "page_view", "session_id": ""})
    assert _fields(exc_info) == {"session_id"}


def test_null_required_field_counts_as_missing() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "page_view", "user_id": None})
    assert _fields(exc_info) == {"user_id"}


def test_click_requires_element_type() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "click"})
    assert _fields(exc_info) == {"element_type"}


def test_click_coordinates_must_be_numeric() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "click", "element_type": "a", "click_x": "left"})
    assert _fields(exc_info) == {"click_x"}


def test_session_end_requires_non_negative_duration() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({"session_id": "s1", "user_id": "u1", "type": "session_end"})
    assert _fields(exc_info) == {"duration"}

    with pytest.raises(ValidationError) as exc_info:
        parse_event({"session_id": "s1", "user_id": "u1", "type": "session_end", "duration": -5})
    assert _fields(exc_info) == {"duration"}


def test_negative_load_time_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "page_view", "load_time": -1})
    assert _fields(exc_info) == {"load_time"}


@pytest.mark.parametrize("load_time", [float("inf"), float("nan")])
def test_non_finite_load_time_is_rejected(load_time: float) -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "page_view", "load_time": load_time})
    assert _fields(exc_info) == {"load_time"}


def test_non_finite_number_inside_custom_properties_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({
            **BASE,
            "type": "custom",
            "event_name": "signup",
            "properties": {"plan": "pro", "scores": [1.5, float("inf")]},
        })
    assert _fields(exc_info) == {"properties"}


def test_long_identifiers_and_custom_element_tags_are_accepted() -> None:
    long_id = "s" * 500
    event = parse_event({
        **BASE,
        "session_id": long_id,
        "type": "click",
        "element_type": "my-very-long-design-system-component-name-with-a-namespace-prefix",
    })
    assert event.session_id == long_id


def test_custom_event_requires_event_name() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_event({**BASE, "type": "custom"})
    assert _fields(exc_info) == {"event_name"}


# ===========================================================================
# Group 4: permissive defaults
# ===========================================================================

def test_page_view_optional_fields_default_to_empty_and_zero() -> None:
    event = parse_event({**BASE, "type": "page_view", "referrer": None})
    assert event.page_title == ""
    assert event.referrer == ""
    assert event.user_agent == ""
    assert event.load_time == 0.0
    assert event.timestamp is None


def test_unknown_extra_fields_are_ignored() -> None:
    event = parse_event({**BASE, "type": "page_view", "screen": {"w": 1920}, "ab_bucket": 3})
    assert not hasattr(event, "screen")


def test_click_text_is_truncated_to_100_characters() -> None:
    event = parse_event({**BASE, "type": "click", "element_type": "p", "element_text": "x" * 250})
    assert event.element_text == "x" * 100


def test_click_fractional_coordinates_are_rounded() -> None:
    event = parse_event(
        {**BASE, "type": "click", "element_type": "button", "click_x": 10.6, "click_y": "20"}
    )
    assert (event.click_x, event.click_y) == (11, 20)


def test_svg_class_name_object_is_flattened() -> None:
    event = parse_event(
        {**BASE, "type": "click", "element_type": "svg", "element_class": {"baseVal": "icon", "animVal": "icon"}}
    )
    assert event.element_class == "icon"


@pytest.mark.parametrize("reported, stored", [(-3, 0), (55, 55), (104, 100)])
def test_scroll_percentages_are_clamped(reported: int, stored: int) -> None:
    event = parse_event({**BASE, "type": "scroll", "scroll_depth_percent": reported, "max_scroll_depth": reported})
    assert event.scroll_depth_percent == stored
    assert event.max_scroll_depth == stored


def test_timestamp_is_normalized_to_utc() -> None:
    event = parse_event({**BASE, "type": "page_view", "timestamp": "2026-10-18T14:00:00+02:00"})
    assert event.timestamp == datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    naive = parse_event({**BASE, "type": "page_view", "timestamp": "2026-10-18T12:00:00"})
    assert naive.timestamp.tzinfo == timezone.utc
