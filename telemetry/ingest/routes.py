"""
Ingest HTTP routes — POST /track, POST /api/analytics

Both paths accept one JSON-encoded event (any Content-Type: the capture script's
sendBeacon() on unload posts text/plain) and run:

    decode → validate → map → write (insert, or upsert for session_end) → commit

Delivery is at-most-once. A rejected or failed event is dropped: there is no
queue, no retry and no second write path. Identical events are stored twice.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry.database import get_db
from telemetry.ingest.mapper import map_event
from telemetry.ingest.schemas import RequestContext
from telemetry.ingest.validator import decode_body, parse_event
from telemetry.store import save_row

router = APIRouter(tags=["ingest"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a load balancer, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "0.0.0.0"


def _request_context(request: Request) -> RequestContext:
    return RequestContext(
        received_at=datetime.now(timezone.utc),
        client_ip=_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/track")
@router.post("/api/analytics")
async def track_event(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Record one telemetry event.

    Returns:
        200: {success, message, table, data: <mapped row>}
        400: VALIDATION_ERROR envelope listing every missing/invalid field.
        500: MAPPING_ERROR or STORAGE_ERROR envelope. The event is lost.
    """
    context = _request_context(request)
    event = parse_event(decode_body(await request.body()))
    row = map_event(event, context)
    await save_row(db, row)

    logger.info("Tracked %s event session_id=%s", event.type, event.session_id)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": "Event tracked successfully",
            "table": row.table,
            "data": row.to_json(),
        },
    )
