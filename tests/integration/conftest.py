"""Integration test fixtures: real Postgres via testcontainers.

Requires Docker to be running.
Run with: pytest tests/integration -v
"""

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from health.domain.orm import Base, GrowthReferenceModel, MedicationProfileModel
from health.reference.curves import WHO_2006_POINTS
from health.reference.medications import FORMULARY
from health.store.factory import get_store
from health.store.sql import SqlStore


@pytest.fixture(scope="session")
def pg_container():
    """Session-scoped PostgreSQL container."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16-alpine") as pg:
        yield pg


@pytest.fixture(scope="session")
def pg_url(pg_container):
    """Async connection URL for the testcontainers Postgres instance."""
    # testcontainers gives us a psycopg2 URL; convert to asyncpg
    url = pg_container.get_connection_url()
    return url.replace("psycopg2", "asyncpg")


@pytest.fixture
async def async_engine(pg_url):
    """Create engine, initialize schema and load the reference tables."""
    engine = create_async_engine(pg_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        session.add_all(GrowthReferenceModel(**point.model_dump(mode="json")) for point in WHO_2006_POINTS)
        session.add_all(MedicationProfileModel(**profile.model_dump(mode="json")) for profile in FORMULARY)
        await session.commit()
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    """Session for seeding rows; tests commit so the Store's own sessions see them."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_store(session_factory) -> SqlStore:
    return SqlStore(session_factory)


@pytest.fixture
async def api_client(sql_store):
    """HTTP client against the app with the SQL Store adapter wired in."""
    from main import app

    app.dependency_overrides[get_store] = lambda: sql_store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
