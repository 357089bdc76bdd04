"""
store.py — Data access facade for the telemetry service.

Provides the three storage operations the rest of the service relies on:
  - insert a mapped row            (page_views, clicks, scroll_events, custom_events)
  - upsert a mapped row by key     (sessions, keyed by session_id)
  - run a read query → rows        (dashboard aggregations, recent events, schema)

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - Every SQLAlchemy / socket failure is re-raised as StorageError; nothing retries
  - One write path per row: no fallback to hand-built SQL strings
  - Logs only table names and session_id, never page text or element text
  - Returns domain Pydantic objects / plain dicts so callers are persistence-agnostic
"""
import logging
from datetime import date, datetime
from typing import Any, Type

from sqlalchemy import desc, distinct, func, inspect, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from telemetry.dashboard.schemas import ClickStat, PageViewStats, ScrollStats, TopPage
from telemetry.database import Base
from telemetry.errors import NotFoundError, StorageError
from telemetry.ingest.mapper import MappedRow
from telemetry.models.click import ClickORM
from telemetry.models.custom_event import CustomEventORM
from telemetry.models.page_view import PageViewORM
from telemetry.models.scroll_event import ScrollEventORM
from telemetry.models.session import SessionORM

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (SQLAlchemyError, OSError)

TABLES: dict[str, Type[Base]] = {
    "page_views": PageViewORM,
    "clicks": ClickORM,
    "scroll_events": ScrollEventORM,
    "sessions": SessionORM,
    "custom_events": CustomEventORM,
}


def _orm_for(table: str) -> Type[Base]:
    try:
        return TABLES[table]
    except KeyError:
        raise NotFoundError(
            f"Unknown table '{table}'",
            details=[{"field": "table", "issue": f"Expected one of {', '.join(TABLES)}"}],
        ) from None


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------

async def insert_row(db: AsyncSession, row: MappedRow) -> None:
    """Append one row. Uses flush(); save_row() owns the commit."""
    orm_cls = _orm_for(row.table)
    db.add(orm_cls(**row.values))
    await db.flush()


async def upsert_row(db: AsyncSession, row: MappedRow) -> None:
    """
    Insert the row, or overwrite every column of the existing row with the same key.

    Select-then-write keeps this dialect-neutral. When a concurrent writer inserts
    the same key between our SELECT and INSERT, the unique violation is caught, the
    transaction is rolled back and the values are applied to the winner's row, so
    the later write wins. The session must hold no other pending work.
    """
    orm_cls = _orm_for(row.table)
    orm = await _find_by_key(db, orm_cls, row)

    if orm is None:
        db.add(orm_cls(**row.values))
        try:
            await db.flush()
            return
        except IntegrityError:
            await db.rollback()
            logger.info(
                "Concurrent insert of %s %s=%s; updating instead",
                row.table, row.upsert_key, row.values[row.upsert_key],
            )
            orm = await _find_by_key(db, orm_cls, row)
            if orm is None:
                raise

    for column, value in row.values.items():
        setattr(orm, column, value)
    await db.flush()


async def _find_by_key(db: AsyncSession, orm_cls: Type[Base], row: MappedRow) -> Any:
    key = row.upsert_key
    result = await db.execute(
        select(orm_cls).where(getattr(orm_cls, key) == row.values[key])
    )
    return result.scalar_one_or_none()


async def save_row(db: AsyncSession, row: MappedRow) -> None:
    """
    Write one mapped row and commit. At-most-once: a failure is terminal.

    Raises:
        StorageError: the write or the commit failed; the transaction is rolled back.
    """
    try:
        if row.upsert_key:
            await upsert_row(db, row)
        else:
            await insert_row(db, row)
        await db.commit()
    except _STORAGE_ERRORS as exc:
        await db.rollback()
        logger.error("Write to %s failed: %s", row.table, exc, exc_info=True)
        raise StorageError(f"Failed to write event to {row.table}") from exc

    logger.info(
        "Saved %s row session_id=%s%s",
        row.table,
        row.values.get("session_id"),
        " (upsert)" if row.upsert_key else "",
    )


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------

async def fetch_rows(db: AsyncSession, statement: Any) -> list[dict[str, Any]]:
    """Execute a read-only statement and return its rows as plain dicts."""
    try:
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]
    except _STORAGE_ERRORS as exc:
        logger.error("Query failed: %s", exc, exc_info=True)
        raise StorageError("Failed to query analytics store") from exc


async def ping(db: AsyncSession) -> str:
    """Round-trip a trivial query; returns the dialect name on success."""
    await fetch_rows(db, text("SELECT 1 AS ok"))
    return db.get_bind().dialect.name


async def describe_table(db: AsyncSession, table: str) -> list[dict[str, Any]]:
    """List the columns of one telemetry table as they exist in the database."""
    _orm_for(table)
    try:
        conn = await db.connection()
        columns = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).get_columns(table)
        )
    except _STORAGE_ERRORS as exc:
        logger.error("Schema introspection of %s failed: %s", table, exc, exc_info=True)
        raise StorageError(f"Failed to describe table {table}") from exc
    return [
        {"name": c["name"], "type": str(c["type"]), "nullable": bool(c.get("nullable", True))}
        for c in columns
    ]


async def get_recent_rows(
    db: AsyncSession,
    table: str,
    limit: int,
) -> list[dict[str, Any]]:
    """Newest rows of one table, newest first."""
    orm_cls = _orm_for(table)
    columns = orm_cls.__table__.columns
    rows = await fetch_rows(
        db,
        select(*columns).order_by(columns["timestamp"].desc()).limit(limit),
    )
    return [{k: _jsonable(v) for k, v in row.items()} for row in rows]


# ---------------------------------------------------------------------------
# Dashboard aggregations — each scoped to timestamp >= since
# ---------------------------------------------------------------------------

async def get_page_view_stats(db: AsyncSession, since: datetime) -> PageViewStats:
    """Total page views plus distinct sessions and users."""
    rows = await fetch_rows(
        db,
        select(
            func.count().label("total_views"),
            func.count(distinct(PageViewORM.session_id)).label("unique_sessions"),
            func.count(distinct(PageViewORM.user_id)).label("unique_users"),
        ).where(PageViewORM.timestamp >= since),
    )
    row = rows[0] if rows else {}
    return PageViewStats(
        total_views=row.get("total_views") or 0,
        unique_sessions=row.get("unique_sessions") or 0,
        unique_users=row.get("unique_users") or 0,
    )


async def get_top_pages(db: AsyncSession, since: datetime, limit: int) -> list[TopPage]:
    """Most viewed page URLs, highest first; ties broken alphabetically."""
    views = func.count().label("views")
    rows = await fetch_rows(
        db,
        select(PageViewORM.page_url, views)
        .where(PageViewORM.timestamp >= since)
        .group_by(PageViewORM.page_url)
        .order_by(desc("views"), PageViewORM.page_url)
        .limit(limit),
    )
    return [TopPage(page_url=r["page_url"], views=r["views"]) for r in rows]


async def get_click_stats(db: AsyncSession, since: datetime) -> list[ClickStat]:
    clicks = func.count().label("clicks")
    rows = await fetch_rows(
        db,
        select(ClickORM.element_type, clicks)
        .where(ClickORM.timestamp >= since)
        .group_by(ClickORM.element_type)
        .order_by(desc("clicks"), ClickORM.element_type),
    )
    return [ClickStat(element_type=r["element_type"], clicks=r["clicks"]) for r in rows]


async def get_scroll_stats(db: AsyncSession, since: datetime) -> ScrollStats:
    """Average of max_scroll_depth (0 when there are no rows) and row count."""
    rows = await fetch_rows(
        db,
        select(
            func.avg(ScrollEventORM.max_scroll_depth).label("avg_scroll_depth"),
            func.count().label("scroll_events"),
        ).where(ScrollEventORM.timestamp >= since),
    )
    row = rows[0] if rows else {}
    avg = row.get("avg_scroll_depth")
    return ScrollStats(
        avg_scroll_depth=round(float(avg), 2) if avg is not None else 0.0,
        scroll_events=row.get("scroll_events") or 0,
    )
