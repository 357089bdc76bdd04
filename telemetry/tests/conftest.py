"""
Test configuration for the telemetry service tests.

Every test that touches storage gets its own SQLite database file (via
aiosqlite) under pytest's tmp_path, with all tables created up front. The
FastAPI app is pointed at it through dependency overrides for get_db and
get_session_factory, so no live server or PostgreSQL is needed.

DATABASE_URL is forced to in-memory SQLite BEFORE telemetry is imported so the
module-level engine in database.py never needs a PostgreSQL driver.
"""
import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

_project_root = Path(__file__).parent.parent.parent   # .../package/
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import telemetry.models  # noqa: F401  (registers every table on Base.metadata)
from telemetry.database import Base, get_db, get_session_factory
from telemetry.main import app


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite file database with every telemetry table created."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'telemetry.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def count_rows(session_factory):
    """Return an async helper: await count_rows(ClickORM) → committed row count."""
    async def _count(orm_cls) -> int:
        async with session_factory() as session:
            return await session.scalar(select(func.count()).select_from(orm_cls))
    return _count


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(session_factory):
    """Async httpx client using ASGI transport — no live server needed."""
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
